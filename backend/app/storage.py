from __future__ import annotations
import logging
import os
import uuid
from pathlib import Path
from typing import Union

from .errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".mp3", ".wav", ".flac", ".m4a", ".aac", ".ogg")

CONTENT_TYPES = {
    ".mp3": "audio/mpeg",
    ".wav": "audio/wav",
    ".flac": "audio/flac",
    ".m4a": "audio/mp4",
    ".aac": "audio/aac",
    ".ogg": "audio/ogg",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

DEFAULT_MAX_SIZE = 100 * 1024 * 1024


def file_extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(file_extension(filename), DEFAULT_CONTENT_TYPE)


class FileStore:
    """Uploaded audio files kept flat in one directory under generated names."""

    def __init__(self, directory: Union[str, Path], max_size: int = DEFAULT_MAX_SIZE):
        self.directory = Path(directory)
        self.max_size = max_size

    def validate(self, data: bytes, original_filename: str) -> str:
        """Check an upload before anything touches the disk; returns its extension."""
        if not original_filename or not data:
            raise BadRequestError("No file selected or the file is empty")

        ext = file_extension(original_filename)
        if ext not in ALLOWED_EXTENSIONS:
            raise BadRequestError(
                f"Unsupported file format. Allowed: {', '.join(ALLOWED_EXTENSIONS)}"
            )

        if len(data) > self.max_size:
            limit_mb = self.max_size // (1024 * 1024)
            raise BadRequestError(f"File is too large. Maximum size: {limit_mb}MB")
        return ext

    def save(self, data: bytes, original_filename: str) -> str:
        ext = self.validate(data, original_filename)

        self.directory.mkdir(parents=True, exist_ok=True)
        stored_name = f"{uuid.uuid4()}{ext}"
        target = self.directory / stored_name
        partial = target.with_name(stored_name + ".part")

        try:
            with open(partial, "wb") as fh:
                fh.write(data)
            os.replace(partial, target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        logger.info("Stored %s as %s (%d bytes)", original_filename, stored_name, len(data))
        return stored_name

    def path_for(self, stored_name: str) -> Path:
        # only bare names produced by save() are addressable
        if not stored_name or Path(stored_name).name != stored_name or stored_name in (".", ".."):
            raise NotFoundError("File not found")
        return self.directory / stored_name

    def read(self, stored_name: str) -> bytes:
        path = self.path_for(stored_name)
        if not path.is_file():
            raise NotFoundError("Audio file not found on disk")
        return path.read_bytes()

    def delete(self, stored_name: str) -> bool:
        """Remove a stored file; a file that is already gone is not an error."""
        path = self.path_for(stored_name)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info("Deleted stored file %s", stored_name)
        return True
