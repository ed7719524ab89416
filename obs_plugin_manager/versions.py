"""Version comparison between installed plugins and upstream releases."""

import re
from typing import Literal, Optional

from packaging.version import InvalidVersion, Version

UNKNOWN_VERSION = "Unknown"

UpdateStatus = Literal["up-to-date", "update-available"]

_NUMERIC_PREFIX = re.compile(r"(\d+(?:\.\d+)*)")


def _clean(version: str) -> str:
    return re.sub(r"^v", "", version.strip(), flags=re.IGNORECASE)


def _coerce(version: str) -> Optional[Version]:
    """Parse a version, falling back to its leading numeric part."""
    cleaned = _clean(version)
    try:
        return Version(cleaned)
    except InvalidVersion:
        pass
    match = _NUMERIC_PREFIX.search(cleaned)
    if match is None:
        return None
    try:
        return Version(match.group(1))
    except InvalidVersion:
        return None


def compare_versions(installed: Optional[str], latest: str) -> UpdateStatus:
    """Compare an installed version against the latest release tag.

    An unknown installed version always counts as an available update.

    Args:
        installed: Installed version string (may be "Unknown" or empty)
        latest: Latest release tag

    Returns:
        "up-to-date" or "update-available"
    """
    if not installed or installed == UNKNOWN_VERSION:
        return "update-available"

    installed_version = _coerce(installed)
    latest_version = _coerce(latest)

    if installed_version is None or latest_version is None:
        same = _clean(installed).lower() == _clean(latest).lower()
        return "up-to-date" if same else "update-available"

    return "update-available" if installed_version < latest_version else "up-to-date"


def format_version(version: Optional[str]) -> str:
    """Format a version for display (strips a leading "v")."""
    if not version or version == UNKNOWN_VERSION:
        return UNKNOWN_VERSION
    return _clean(version)
