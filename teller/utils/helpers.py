"""Utility functions for teller."""

import os
from datetime import UTC, datetime
from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """Get the teller data directory.

    Respects TELLER_HOME environment variable; falls back to ~/.teller.
    """
    teller_home = os.environ.get("TELLER_HOME", "").strip()
    if teller_home:
        return ensure_dir(Path(teller_home))
    return ensure_dir(Path.home() / ".teller")


def resolve_db_path(raw: str) -> Path:
    """Expand a configured database path; relative paths live under the data dir."""
    candidate = Path(raw).expanduser()
    return candidate if candidate.is_absolute() else get_data_path() / candidate


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def utc_day(moment: datetime | None = None) -> str:
    """Return the UTC calendar day (YYYY-MM-DD) used as a counter window."""
    return (moment or utc_now()).astimezone(UTC).strftime("%Y-%m-%d")


def parse_iso(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def truncate_string(s: str, max_len: int = 100, suffix: str = "...") -> str:
    """Truncate a string to max length, adding suffix if truncated."""
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix
