"""
Path security validation for the local-file blob backend.

Blob handles are paths relative to the library root; these helpers make sure
a handle can never reach outside it through traversal or symlinks.
"""

from pathlib import Path
from typing import Optional


def is_path_within_library(file_path: Path, library_root: Path) -> bool:
    """Pure function - validates path is within the library root.

    Uses Path.resolve() to handle symlinks and relative paths, then checks if the
    resolved path is a child of the library root.

    Args:
        file_path: The file path to validate
        library_root: Allowed root directory

    Returns:
        True if path is within library boundaries, False otherwise
    """
    try:
        resolved_path = file_path.resolve()
        resolved_path.relative_to(library_root.resolve())
        return True
    except ValueError:
        # relative_to raises ValueError if path is not a subpath
        return False
    except (OSError, RuntimeError):
        # Path.resolve() can raise OSError for invalid paths or RuntimeError for recursion
        return False


def resolve_blob_path(handle: str, library_root: Path) -> Optional[Path]:
    """Pure function - maps a blob handle to a file under the library root.

    Returns:
        The resolved Path if the handle stays inside the root, None otherwise
    """
    if not handle or not handle.strip() or Path(handle).is_absolute():
        return None

    candidate = library_root / handle
    if not is_path_within_library(candidate, library_root):
        return None

    return candidate.resolve()
