"""Shared utilities for the viviendas inventory tools."""

# Common utilities
from utils.common import (
    dated_filename,
    isoformat,
    parse_timestamp,
    sanitize_filename,
    utc_now,
)

# String utilities
from utils.strings import cell_text, is_blank, is_numeric, normalize_whitespace, to_number

# Formatting utilities
from utils.formatting import (
    format_currency,
    format_date,
    get_estado_color,
    get_estado_icon,
    get_role_color,
)

# HTTP utilities
from utils.http import RetryStrategy, SessionManager, error_message

# Configuration
from utils.config import AppConfig

__all__ = [
    # Common
    "dated_filename",
    "isoformat",
    "parse_timestamp",
    "sanitize_filename",
    "utc_now",
    # Strings
    "cell_text",
    "is_blank",
    "is_numeric",
    "normalize_whitespace",
    "to_number",
    # Formatting
    "format_currency",
    "format_date",
    "get_estado_color",
    "get_estado_icon",
    "get_role_color",
    # HTTP
    "RetryStrategy",
    "SessionManager",
    "error_message",
    # Config
    "AppConfig",
]
