"""
Track metadata extraction and path validation.

Reads tags from audio files using Mutagen, falling back to the file name
when a file carries no usable tags.
"""

import os
from pathlib import Path
from typing import Any, Iterable, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from tunebox.errors import InvalidTrackError

from .models import Track

# Extensions accepted by the decoder chain (ffmpeg handles all of these)
DEFAULT_SUPPORTED_FORMATS = (
    ".mp3",
    ".flac",
    ".wav",
    ".ogg",
    ".opus",
    ".m4a",
    ".aac",
    ".wma",
    ".ape",
    ".aiff",
)


def get_tag_value(audio_file: MutagenFile, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
            if value:
                if isinstance(value, list) and value:
                    return str(value[0])
                return str(value)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
    return None


def extract_metadata_from_filename(local_path: str) -> dict[str, Any]:
    """Extract basic info from filename as fallback."""
    title = Path(local_path).stem
    artist = None

    # Try to parse "Artist - Title" format
    if " - " in title:
        parts = title.split(" - ", 1)
        if len(parts) == 2:
            artist = parts[0].strip()
            title = parts[1].strip()

    return {"title": title, "artist": artist}


def is_supported(path: Path, supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS) -> bool:
    """Check whether a path has a supported audio extension."""
    return path.suffix.lower() in {fmt.lower() for fmt in supported_formats}


def read_track(local_path: str) -> Track:
    """Build a Track for a file, reading tags with mutagen when possible."""
    path = str(Path(local_path).expanduser().resolve())
    fallback = extract_metadata_from_filename(path)

    try:
        audio_file = MutagenFile(path)
    except (MutagenError, OSError) as e:
        logger.debug(f"Mutagen could not read {path}: {e}")
        audio_file = None

    if audio_file is None:
        return Track(path=path, title=fallback["title"], artist=fallback["artist"])

    # ID3 (MP3), MP4, and Vorbis/Opus tags (lowercase)
    title = get_tag_value(audio_file, ["TIT2", "\xa9nam", "TITLE", "title"])
    artist = get_tag_value(audio_file, ["TPE1", "\xa9ART", "ARTIST", "artist"])

    duration = None
    if getattr(audio_file, "info", None) is not None:
        length = getattr(audio_file.info, "length", None)
        if length and length > 0:
            duration = float(length)

    return Track(
        path=path,
        title=title or fallback["title"],
        artist=artist or fallback["artist"],
        duration=duration,
    )


def validate_track_path(
    local_path: str, supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS
) -> Path:
    """Return the resolved path of a playable file.

    Raises:
        InvalidTrackError: If the file doesn't exist or isn't a supported format
    """
    path = Path(local_path).expanduser()
    if not path.is_file():
        raise InvalidTrackError(f"File not found: {local_path}")
    if not is_supported(path, supported_formats):
        raise InvalidTrackError(f"Unsupported audio format: {path.suffix or local_path}")
    return path.resolve()


def collect_tracks(
    local_path: str, supported_formats: Iterable[str] = DEFAULT_SUPPORTED_FORMATS
) -> list[Track]:
    """Resolve a file or directory into the tracks it contains.

    Directories are walked recursively (following symlinks) and files are
    returned in sorted path order.

    Raises:
        InvalidTrackError: If nothing playable is found at the path
    """
    path = Path(local_path).expanduser()
    formats = tuple(supported_formats)

    if path.is_dir():
        found = []
        for root, _dirs, files in os.walk(path, followlinks=True):
            for name in files:
                candidate = Path(root) / name
                if is_supported(candidate, formats):
                    found.append(str(candidate.resolve()))
        if not found:
            raise InvalidTrackError(f"No supported audio files in: {local_path}")
        logger.info(f"Found {len(found)} audio files under {path}")
        return [read_track(p) for p in sorted(found)]

    return [read_track(str(validate_track_path(local_path, formats)))]
