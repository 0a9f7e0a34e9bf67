"""Installed package version."""

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION = "kube-portforwarder"


def get_version() -> str:
    """Version of the installed distribution, "unknown" when not installed."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return "unknown"


__version__ = get_version()
