"""Version information for cryptodash."""

import os
from importlib.metadata import PackageNotFoundError, version


def get_package_version() -> str:
    """Installed distribution version, or 'unknown' when running from a checkout."""
    try:
        return version("cryptodash")
    except PackageNotFoundError:
        return "unknown"


def get_version_info() -> str:
    """Get formatted version information for logging.

    Returns:
        Package version plus the GIT_COMMIT build variable, if set.
    """
    commit = os.getenv("GIT_COMMIT", "unknown")
    return f"{get_package_version()} (commit={commit})"
