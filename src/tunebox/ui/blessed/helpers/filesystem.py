"""Directory listing for the file browser."""

from pathlib import Path
from typing import Iterable, Union

from loguru import logger

from tunebox.domain.library import DEFAULT_SUPPORTED_FORMATS, is_supported

from ..state import BrowserEntry, BrowserState


def list_directory(
    directory: Path, supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS
) -> list[BrowserEntry]:
    """
    List a directory for browsing.

    The parent link comes first (except at the filesystem root), then
    sub-directories, then playable files. Other files are left out.

    Raises:
        OSError: If the directory can't be read
    """
    formats = tuple(supported_formats)
    dirs: list[Path] = []
    files: list[Path] = []
    for child in directory.iterdir():
        try:
            if child.is_dir():
                dirs.append(child)
            elif is_supported(child, formats):
                files.append(child)
        except OSError as e:
            logger.debug(f"Skipping {child}: {e}")

    entries = []
    if directory.parent != directory:
        entries.append(BrowserEntry(path=str(directory.parent), name="..", is_dir=True, is_parent=True))
    entries.extend(BrowserEntry(path=str(d), name=d.name, is_dir=True) for d in sorted(dirs))
    entries.extend(BrowserEntry(path=str(f), name=f.name, is_dir=False) for f in sorted(files))
    return entries


def open_directory(
    path: Union[str, Path], supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS
) -> BrowserState:
    """Browse path, or its closest readable ancestor when it can't be listed.

    Raises:
        OSError: If not even the filesystem root can be listed
    """
    directory = Path(path).expanduser().resolve()
    while True:
        try:
            return BrowserState(path=str(directory), entries=list_directory(directory, supported_formats))
        except OSError as e:
            if directory.parent == directory:
                raise
            logger.warning(f"Cannot read {directory}: {e}")
            directory = directory.parent
