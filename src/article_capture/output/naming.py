"""
Module: output.naming

Purpose:
    Artifact file names: <prefix>-<timestamp>.<ext>, where the timestamp
    is the UTC ISO-8601 instant with ":" and "." replaced by "-" and
    truncated to whole seconds.

Key Functions:
    - artifact_timestamp(): 2026-10-19T13-55-00
    - artifact_filename(): article-2026-10-19T13-55-00.png
    - unique_artifact_path(): Path in a directory that does not exist yet

Used By:
    - pipeline: Saving phase
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

EXTENSIONS = {"png": "png", "pdf": "pdf"}


def artifact_timestamp(now: Optional[datetime] = None) -> str:
    """
    Timestamp part of an artifact name.

    Args:
        now: Instant to format (defaults to the current UTC time). Naive
            datetimes are treated as UTC.

    Example:
        >>> artifact_timestamp(datetime(2026, 10, 19, 13, 55, 0, 123000))
        '2026-10-19T13-55-00'
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    iso = now.replace(tzinfo=None).isoformat(timespec="milliseconds")
    return iso.replace(":", "-").replace(".", "-")[:19]


def artifact_filename(
    output_format: str,
    prefix: str = "article",
    now: Optional[datetime] = None,
) -> str:
    """
    Build <prefix>-<timestamp>.<ext>.

    Raises:
        ValueError: Unknown output format
    """
    try:
        ext = EXTENSIONS[output_format]
    except KeyError:
        raise ValueError(f"Unknown output format: {output_format!r}") from None
    return f"{prefix}-{artifact_timestamp(now)}.{ext}"


def unique_artifact_path(
    directory: Path,
    output_format: str,
    prefix: str = "article",
    now: Optional[datetime] = None,
) -> Path:
    """Artifact path in directory, suffixed with -1, -2... if the name is taken."""
    base = directory / artifact_filename(output_format, prefix, now)
    path = base
    counter = 1
    while path.exists():
        path = base.with_name(f"{base.stem}-{counter}{base.suffix}")
        counter += 1
    return path
