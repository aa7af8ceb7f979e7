#!/usr/bin/env python3
"""
Main Entry Point - Clarity command line
Analyse a ChatGPT share link or a pasted transcript from the terminal
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import Dict, List, Optional

from clarity import __version__
from clarity.config.settings import get_openrouter_api_key
from clarity.errors import ClarityError
from clarity.llm.agent import AnalysisOrchestrator
from clarity.llm.database import HistoryManager, SqlStore
from clarity.llm.generate import AnalysisClient
from clarity.llm.mindmap import MindMapLayoutEngine
from clarity.llm.prompts import ANALYSIS_TYPES, DEFAULT_SELECTED_TYPES, get_label
from clarity.models import AnalysisSession, LogEntry, SessionStatus
from clarity.tools.cancellation import CancellationToken
from clarity.tools.extractor import ShareLinkFetcher
from clarity.tools.utils import Logger, mask_secret


def print_banner():
    """Print application banner"""
    banner = """
╔═══════════════════════════════════════════════════════════╗
║                                                           ║
║          CLARITY - CHATGPT CONVERSATION ANALYSIS          ║
║                                                           ║
╚═══════════════════════════════════════════════════════════╝
    """
    Logger.banner(banner)
    Logger.info(f"API key: {mask_secret(get_openrouter_api_key())}")
    print("=" * 60)


def print_analysis_types():
    for key, info in ANALYSIS_TYPES.items():
        marker = '*' if key in DEFAULT_SELECTED_TYPES else ' '
        print(f" {marker} {key:<10} {info['icon']} {info['label']} - {info['description']}")


def parse_types(value: Optional[str]) -> List[str]:
    if not value:
        return list(DEFAULT_SELECTED_TYPES)
    return [item.strip() for item in value.split(',') if item.strip()]


class ConsoleStreamer:
    """Prints each analysis as it streams, one section per type"""

    def __init__(self):
        self.printed: Dict[str, int] = {}

    def on_log(self, entry: LogEntry):
        if entry.kind == 'success':
            Logger.success(entry.message)
        elif entry.kind == 'error':
            Logger.error(entry.message)
        elif entry.kind == 'processing':
            Logger.banner(entry.message)
        else:
            Logger.info(entry.message)

    def on_content(self, analysis_type: str, content: str):
        already = self.printed.get(analysis_type, 0)
        sys.stdout.write(content[already:])
        sys.stdout.flush()
        self.printed[analysis_type] = len(content)


async def run_analysis(
    input_text: str,
    types: List[str],
    mindmap: bool = False,
    save_history: bool = True,
) -> AnalysisSession:
    """Run one session with Ctrl-C wired to its cancellation token"""
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops have no signal handlers; Ctrl-C raises KeyboardInterrupt instead
        pass

    streamer = ConsoleStreamer()
    history = HistoryManager(SqlStore()) if save_history else None
    orchestrator = AnalysisOrchestrator(
        AnalysisClient(),
        ShareLinkFetcher(),
        history=history,
        on_log=streamer.on_log,
        on_content=streamer.on_content,
    )

    try:
        session = await orchestrator.run(input_text, types, cancel_token=token)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
    print()

    if session.status == SessionStatus.COMPLETED:
        Logger.banner(f"Results for: {session.conversation.title}")
        for result in session.ordered_results():
            Logger.success(f"{get_label(result.type)}: {len(result.content)} chars")

        if mindmap and session.results:
            try:
                engine = MindMapLayoutEngine()
                data = await engine.generate(session.ordered_results(), session.conversation.title)
                print(json.dumps(data.model_dump(mode='json', by_alias=True), indent=2, ensure_ascii=False))
            except ClarityError as e:
                Logger.error(f"Mind map failed: {e.message}")
    elif session.cancelled:
        Logger.warning("Analysis cancelled by user")
    else:
        Logger.error(f"Analysis failed: {session.error}")

    return session


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description='Clarity - analyse ChatGPT conversations with an LLM',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  Analyse a share link:
    clarity https://chatgpt.com/share/abc-123

  Analyse a saved transcript with chosen analyses:
    clarity --file chat.txt -t summary,actions,decisions

  Build a mind map after the analyses:
    clarity https://chatgpt.com/share/abc-123 --mindmap
        '''
    )

    parser.add_argument(
        'input',
        nargs='?',
        help='Share link or conversation text'
    )

    parser.add_argument(
        '-t', '--types',
        help='Comma separated analysis types (default: %s)' % ','.join(DEFAULT_SELECTED_TYPES)
    )

    parser.add_argument(
        '--file',
        help='Read the conversation text from a file'
    )

    parser.add_argument(
        '--list-types',
        action='store_true',
        help='List the available analysis types and exit'
    )

    parser.add_argument(
        '--mindmap',
        action='store_true',
        help='Print a laid out mind map as JSON once the analyses complete'
    )

    parser.add_argument(
        '--no-history',
        action='store_true',
        help='Do not save the session to the history database'
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'Clarity v{__version__}'
    )

    args = parser.parse_args()

    if args.list_types:
        print_analysis_types()
        sys.exit(0)

    if args.file:
        try:
            with open(args.file, 'r', encoding='utf-8') as f:
                input_text = f.read()
        except OSError as e:
            Logger.error(f"Could not read {args.file}: {e}")
            sys.exit(1)
    elif args.input:
        input_text = args.input
    else:
        parser.error('provide a share link, conversation text or --file')

    print_banner()

    try:
        session = asyncio.run(run_analysis(
            input_text,
            parse_types(args.types),
            mindmap=args.mindmap,
            save_history=not args.no_history,
        ))
        sys.exit(0 if session.status == SessionStatus.COMPLETED else 1)

    except KeyboardInterrupt:
        Logger.warning("\n\nInterrupted by user. Exiting...")
        sys.exit(1)
    except Exception as e:
        Logger.error(f"Fatal error: {str(e)}")
        sys.exit(1)


if __name__ == '__main__':
    main()
