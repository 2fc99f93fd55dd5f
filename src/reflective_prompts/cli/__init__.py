"""
CLI module for reflective prompts.

Provides command-line tools for ranking, insight caching and scheduler maintenance.
"""

from reflective_prompts.cli.prompts import main as prompts_main

__all__ = ["prompts_main"]
