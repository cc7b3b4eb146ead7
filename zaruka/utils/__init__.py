"""
Utilities Module
================

Common utilities shared across the package:
- logger: Context-aware logging with levels
- config: Centralized configuration management
- cache: Injectable time-to-live cache
"""

from zaruka.utils.logger import Logger, logger, set_default_level
from zaruka.utils.cache import TTLCache

__all__ = ["Logger", "logger", "set_default_level", "TTLCache"]
