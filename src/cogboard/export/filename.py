"""Artifact naming for exported recordings.

Default names follow ``{prefix}_{Kind}Data-YYYYMMDDTHHMMSS`` (ISO basic
format), e.g. ``BalanceBoard_AllData-20240131T142501``. User-supplied names
are sanitized for filesystem safety.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum

DEFAULT_PREFIX = "BalanceBoard"

# Characters reserved on Windows or otherwise problematic in filenames
_UNSAFE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f ]')

_UNSAFE_EXTENSION_CHARS = re.compile(r"[^a-zA-Z0-9]")


class ArtifactKind(Enum):
    """Which buffer an artifact was exported from."""

    ALL = "All"
    TRIAL = "Trial"


def sanitize_name(name: str) -> str:
    """Sanitize an artifact name for filesystem safety.

    Args:
        name: User-provided base name (no directory part).

    Returns:
        Name with unsafe characters removed and surrounding dots stripped.
    """
    if not name:
        return ""
    sanitized = _UNSAFE_CHARS.sub("", name)
    sanitized = re.sub(r"[_\-]{2,}", "_", sanitized)
    return sanitized.strip(" .")


def sanitize_extension(extension: str) -> str:
    """Keep only the alphanumeric part of an extension."""
    return _UNSAFE_EXTENSION_CHARS.sub("", extension.lstrip("."))


def default_artifact_name(
    kind: ArtifactKind,
    timestamp: datetime | None = None,
    prefix: str = DEFAULT_PREFIX,
) -> str:
    """Generate a timestamped artifact name without extension.

    Args:
        kind: Buffer the artifact comes from.
        timestamp: Timestamp to use. Defaults to current local time.
        prefix: Name prefix.

    Returns:
        Name such as ``BalanceBoard_TrialData-20240131T142501``.
    """
    if timestamp is None:
        timestamp = datetime.now()
    time_str = timestamp.strftime("%Y%m%dT%H%M%S")
    safe_prefix = sanitize_name(prefix)
    stem = f"{kind.value}Data-{time_str}"
    return f"{safe_prefix}_{stem}" if safe_prefix else stem


def artifact_filename(name: str, extension: str) -> str:
    """Combine a base name and extension into a safe filename.

    An extension already present on ``name`` is not repeated.

    Raises:
        ValueError: If the name or extension is empty after sanitization.
    """
    ext = sanitize_extension(extension)
    if not ext:
        raise ValueError("Extension cannot be empty")
    base = sanitize_name(name)
    if base.lower().endswith("." + ext.lower()):
        base = base[: -(len(ext) + 1)]
    if not base:
        raise ValueError("Artifact name cannot be empty")
    return f"{base}.{ext}"
