"""
Loresmith - Character Authoring Agent
=====================================

An autonomous agent that researches fictional characters on MediaWiki
sites and writes character cards and lorebooks from what it finds.

This package provides:
- Agent loop that streams model replies and runs the commands in them
- Tools for wiki research, character and lorebook editing, and the
  Knowledge Base of downloaded pages
- Completion transports for OpenAI-compatible servers and Gemini
"""

__version__ = "0.1.0"
