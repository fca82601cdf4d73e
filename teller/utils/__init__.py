"""Utility helpers."""

from teller.utils.helpers import ensure_dir, get_data_path, truncate_string, utc_now_iso

__all__ = ["ensure_dir", "get_data_path", "truncate_string", "utc_now_iso"]
