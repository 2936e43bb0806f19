"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (Loguru)
"""

from .config import (
    Config,
    create_default_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_log_dir,
    load_config,
    parse_config,
)
from .output import setup_loguru

__all__ = [
    "Config",
    "create_default_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_log_dir",
    "load_config",
    "parse_config",
    "setup_loguru",
]
