"""
PR Review Bot.

GitHub App that reviews newly opened pull requests with full file context.
"""

__version__ = "1.0.0"
