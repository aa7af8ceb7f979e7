#!/usr/bin/env python3
"""
Utility functions shared by the Clarity tools
"""

from colorama import Fore, Style, init

# Initialize colorama for Windows support
init(autoreset=True)


class Logger:
    """Simple logger with color support"""

    @staticmethod
    def info(message):
        print(f"{Fore.CYAN}[*]{Style.RESET_ALL} {message}")

    @staticmethod
    def success(message):
        print(f"{Fore.GREEN}[+]{Style.RESET_ALL} {message}")

    @staticmethod
    def warning(message):
        print(f"{Fore.YELLOW}[!]{Style.RESET_ALL} {message}")

    @staticmethod
    def error(message):
        print(f"{Fore.RED}[!]{Style.RESET_ALL} {message}")

    @staticmethod
    def banner(message):
        print(f"\n{Fore.CYAN}{'='*60}")
        print(f"{message}")
        print(f"{'='*60}{Style.RESET_ALL}\n")


def mask_secret(value, visible=8):
    """Show only the first characters of an API key"""
    if not value:
        return "not set"
    return f"{value[:visible]}..."


def truncate(text, length, suffix="..."):
    """Cut text to length characters, appending suffix when shortened"""
    if len(text) <= length:
        return text
    return text[:length] + suffix
