from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Any, Optional

import mutagen

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

# easy keys first, then raw ID3 frames and MP4 atoms for files mutagen
# cannot open in "easy" mode (e.g. WAVE/AIFF with an ID3 chunk)
TITLE_KEYS = ("title", "TIT2", "\xa9nam")
ARTIST_KEYS = ("artist", "TPE1", "\xa9ART")
ALBUM_KEYS = ("album", "TALB", "\xa9alb")


@dataclass
class AudioMetadata:
    title: str
    artist: str = UNKNOWN_ARTIST
    album: str = UNKNOWN_ALBUM
    duration_seconds: int = 0
    bitrate: int = 0


def title_from_filename(original_filename: str) -> str:
    base = os.path.basename((original_filename or "").replace("\\", "/"))
    return os.path.splitext(base)[0] or base


def _first_text(tags: Any, keys) -> Optional[str]:
    if tags is None:
        return None
    for key in keys:
        try:
            value = tags.get(key)
        except (KeyError, ValueError):
            continue
        if value is None:
            continue
        value = getattr(value, "text", value)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


class MetadataExtractor:
    """Reads tags and stream properties from a stored audio file.

    Never raises: an unreadable file yields a placeholder record derived from
    the original upload name.
    """

    def extract(self, path: str, original_filename: str) -> AudioMetadata:
        fallback_title = title_from_filename(original_filename)
        try:
            audio = mutagen.File(path, easy=True)
            if audio is None:
                raise ValueError("unrecognised audio format")
        except Exception:
            logger.warning("Could not read metadata from %s", path, exc_info=True)
            return AudioMetadata(title=fallback_title)

        tags = audio.tags
        info = audio.info
        length = getattr(info, "length", 0) or 0
        bitrate = getattr(info, "bitrate", 0) or 0

        return AudioMetadata(
            title=_first_text(tags, TITLE_KEYS) or fallback_title,
            artist=_first_text(tags, ARTIST_KEYS) or UNKNOWN_ARTIST,
            album=_first_text(tags, ALBUM_KEYS) or UNKNOWN_ALBUM,
            duration_seconds=int(length),
            bitrate=int(bitrate) // 1000,
        )
