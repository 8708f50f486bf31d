from __future__ import annotations
import logging
from typing import Iterable, List, Tuple

from fastapi import HTTPException
from sqlalchemy.orm import Session

from .metadata import MetadataExtractor
from .models import Track
from .repositories import TrackRepository
from .storage import FileStore, file_extension

logger = logging.getLogger(__name__)


class UploadPipeline:
    """Store an uploaded file, read its tags and register it as a track.

    A file written to disk whose track insert then fails is left in place;
    orphaned files are not reconciled.
    """

    def __init__(self, session: Session, store: FileStore, extractor: MetadataExtractor):
        self.session = session
        self.store = store
        self.extractor = extractor
        self.tracks = TrackRepository(session)

    def upload_one(self, original_filename: str, data: bytes) -> Track:
        stored_name = self.store.save(data, original_filename)
        meta = self.extractor.extract(str(self.store.path_for(stored_name)), original_filename)

        track = self.tracks.create(
            {
                "title": meta.title[:200],
                "artist": meta.artist[:200],
                "album": meta.album[:200],
                "duration_seconds": meta.duration_seconds,
                "file_path": stored_name,
                "audio_format": file_extension(stored_name).lstrip("."),
                "bitrate": meta.bitrate,
            }
        )
        logger.info("Audio file uploaded: %s -> %s", original_filename, stored_name)
        return track

    def upload_many(self, files: Iterable[Tuple[str, bytes]]) -> Tuple[List[Track], List[str]]:
        uploaded: List[Track] = []
        errors: List[str] = []
        for filename, data in files:
            try:
                uploaded.append(self.upload_one(filename, data))
            except HTTPException as exc:
                errors.append(f"Failed to upload {filename}: {exc.detail}")
            except Exception as exc:
                self.session.rollback()
                logger.exception("Error uploading file %s", filename)
                errors.append(f"Failed to upload {filename}: {exc}")
        return uploaded, errors
