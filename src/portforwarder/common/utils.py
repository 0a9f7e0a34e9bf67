"""Utility functions shared across the supervisor."""

import os
import shutil

from .exceptions import BinaryNotFoundError

# Port range constants
MIN_PORT = 1
MAX_PORT = 65535

DEFAULT_KUBECTL = "kubectl"


def find_binary(name: str = DEFAULT_KUBECTL) -> str:
    """Resolve an executable name or path to an absolute path.

    Args:
        name: Binary name looked up on PATH, or an explicit path

    Returns:
        Path to the executable

    Raises:
        BinaryNotFoundError: If the binary cannot be found or is not executable
    """
    if os.sep in name:
        if os.path.isfile(name) and os.access(name, os.X_OK):
            return name
        raise BinaryNotFoundError(f"Binary is not executable: {name}")

    resolved = shutil.which(name)
    if resolved is None:
        raise BinaryNotFoundError(
            f"'{name}' not found in system PATH. "
            "Install kubectl and make sure it is available in your PATH."
        )
    return resolved


def format_seconds(seconds: float | None) -> str:
    """Render an elapsed time for display, empty when unknown."""
    if seconds is None:
        return ""
    return f"{int(seconds)} s"
