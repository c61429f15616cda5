"""
Utilities Module
================

Common utilities shared across the package:
- logger: coloured, context-aware logging
- config: environment-driven configuration
- json_cleaner: permissive recovery of JSON written by language models
"""

from loresmith.utils.logger import Logger, logger, configure_logging
from loresmith.utils.config import get_config, Config
from loresmith.utils.json_cleaner import clean_json, recover_arguments

__all__ = [
    "Logger",
    "logger",
    "configure_logging",
    "get_config",
    "Config",
    "clean_json",
    "recover_arguments",
]
