"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_app_timezone,
    get_app_timezone,
    now_in_app_timezone,
    to_storage_datetime,
)
from .formatting import format_amount, format_indian_grouping

__all__ = [
    "ensure_app_timezone",
    "format_amount",
    "format_indian_grouping",
    "get_app_timezone",
    "now_in_app_timezone",
    "to_storage_datetime",
]
