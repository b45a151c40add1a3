"""Find Postman collection files under a services directory."""

import os
from pathlib import Path

from postman_sync.errors import FilesystemError

COLLECTION_SUFFIX = ".postman_collection.json"


def discover_collections(root: Path) -> list[Path]:
    """Return every collection file under root, recursively, sorted by path.

    Symlinks are not followed, neither to files nor to directories. Raises
    FilesystemError if root or any directory below it cannot be read.
    """
    root = Path(root).resolve()
    if not root.is_dir():
        raise FilesystemError(root, "services directory does not exist")

    found: list[Path] = []
    _walk(root, found)
    return sorted(found, key=str)


def _walk(directory: Path, found: list[Path]) -> None:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        raise FilesystemError(directory, str(e)) from e

    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            _walk(Path(entry.path), found)
        elif entry.is_file(follow_symlinks=False) and entry.name.endswith(COLLECTION_SUFFIX):
            found.append(Path(entry.path))


def relative_key(path: Path, root: Path) -> str:
    """Mapping key for a collection file: its POSIX path relative to the project root."""
    return Path(os.path.relpath(Path(path).resolve(), Path(root).resolve())).as_posix()
