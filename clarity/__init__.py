"""
Clarity - structured LLM analyses of ChatGPT conversations
"""

__version__ = '1.0.0'
