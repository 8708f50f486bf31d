from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from .errors import BadRequestError, ConflictError, NotFoundError
from .models import Playlist, PlaylistTrack, Track, utcnow

logger = logging.getLogger(__name__)

TRACK_FIELDS = (
    "title",
    "artist",
    "album",
    "duration_seconds",
    "file_path",
    "audio_format",
    "bitrate",
)
PLAYLIST_FIELDS = ("name", "description")

# attempts at assigning a free order value before giving up
ORDER_RETRY_ATTEMPTS = 5

DEFAULT_PAGE_SIZE = 20


def _commit_update(session: Session, model, entity_id: int, label: str) -> None:
    try:
        session.commit()
    except StaleDataError:
        session.rollback()
        if session.get(model, entity_id) is None:
            raise NotFoundError(f"{label} not found")
        logger.warning("Concurrent update detected on %s %s", label.lower(), entity_id)
        raise ConflictError(f"{label} {entity_id} was modified concurrently; reload and retry")


class TrackRepository:
    def __init__(self, session: Session):
        self.session = session

    def list(
        self,
        search: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> List[Track]:
        stmt = select(Track)
        if search:
            stmt = stmt.where(
                or_(
                    Track.title.contains(search, autoescape=True),
                    Track.artist.contains(search, autoescape=True),
                    Track.album.contains(search, autoescape=True),
                )
            )
        stmt = stmt.order_by(Track.title, Track.id)
        if page or page_size:
            page_size = page_size or DEFAULT_PAGE_SIZE
            stmt = stmt.offset(((page or 1) - 1) * page_size).limit(page_size)
        return list(self.session.scalars(stmt))

    def get(self, track_id: int) -> Track:
        track = self.session.get(Track, track_id)
        if track is None:
            raise NotFoundError("Track not found")
        return track

    def get_by_file_path(self, file_path: str) -> Track:
        track = self.session.scalars(
            select(Track).where(Track.file_path == file_path).limit(1)
        ).first()
        if track is None:
            raise NotFoundError("Track not found")
        return track

    def create(self, fields: Dict[str, Any]) -> Track:
        now = utcnow()
        track = Track(**{k: fields[k] for k in TRACK_FIELDS if k in fields})
        track.created_at = now
        track.updated_at = now
        self.session.add(track)
        self.session.commit()
        logger.info("Created track %s (%s - %s)", track.id, track.artist, track.title)
        return track

    def update(self, track_id: int, payload_id: int, fields: Dict[str, Any]) -> Track:
        if track_id != payload_id:
            raise BadRequestError("Track id in path and body do not match")

        track = self.get(track_id)
        for name in TRACK_FIELDS:
            setattr(track, name, fields.get(name))
        track.updated_at = utcnow()
        _commit_update(self.session, Track, track_id, "Track")
        return track

    def delete(self, track_id: int) -> None:
        track = self.get(track_id)
        self.session.delete(track)
        try:
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            raise NotFoundError("Track not found")
        logger.info("Deleted track %s", track_id)


class PlaylistRepository:
    """Playlists and their ordered track membership."""

    def __init__(self, session: Session):
        self.session = session

    def _with_tracks(self):
        return select(Playlist).options(
            selectinload(Playlist.entries).joinedload(PlaylistTrack.track)
        )

    def list(self) -> List[Playlist]:
        stmt = self._with_tracks().order_by(Playlist.name, Playlist.id)
        return list(self.session.scalars(stmt))

    def get(self, playlist_id: int) -> Playlist:
        stmt = self._with_tracks().where(Playlist.id == playlist_id)
        playlist = self.session.scalars(stmt).first()
        if playlist is None:
            raise NotFoundError("Playlist not found")
        return playlist

    def create(self, name: str, description: Optional[str] = None) -> Playlist:
        now = utcnow()
        playlist = Playlist(name=name, description=description, created_at=now, updated_at=now)
        self.session.add(playlist)
        self.session.commit()
        logger.info("Created playlist %s (%s)", playlist.id, playlist.name)
        return playlist

    def update(self, playlist_id: int, payload_id: int, fields: Dict[str, Any]) -> Playlist:
        if playlist_id != payload_id:
            raise BadRequestError("Playlist id in path and body do not match")

        playlist = self.session.get(Playlist, playlist_id)
        if playlist is None:
            raise NotFoundError("Playlist not found")
        for name in PLAYLIST_FIELDS:
            setattr(playlist, name, fields.get(name))
        playlist.updated_at = utcnow()
        _commit_update(self.session, Playlist, playlist_id, "Playlist")
        return playlist

    def delete(self, playlist_id: int) -> None:
        playlist = self.session.get(Playlist, playlist_id)
        if playlist is None:
            raise NotFoundError("Playlist not found")
        self.session.delete(playlist)
        try:
            self.session.commit()
        except StaleDataError:
            self.session.rollback()
            raise NotFoundError("Playlist not found")
        logger.info("Deleted playlist %s", playlist_id)

    def _find_entry(self, playlist_id: int, track_id: int) -> Optional[PlaylistTrack]:
        stmt = select(PlaylistTrack).where(
            PlaylistTrack.playlist_id == playlist_id,
            PlaylistTrack.track_id == track_id,
        )
        return self.session.scalars(stmt).first()

    def _next_order(self, playlist_id: int) -> int:
        current = self.session.scalar(
            select(func.max(PlaylistTrack.order)).where(PlaylistTrack.playlist_id == playlist_id)
        )
        return (current or 0) + 1

    def add_track(self, playlist_id: int, track_id: int) -> PlaylistTrack:
        """Append a track to the end of a playlist.

        The playlist row is locked while max(order)+1 is computed and the
        membership inserted; on SQLite, which has no row locks, the whole
        transaction is opened with BEGIN IMMEDIATE. The unique
        (playlist_id, order) constraint stays as the last guard: a losing
        insert is rolled back and retried with a fresh order value.
        """
        if self.session.in_transaction():
            self.session.commit()

        for attempt in range(1, ORDER_RETRY_ATTEMPTS + 1):
            self.session.connection(execution_options={"sqlite_begin": "IMMEDIATE"})
            playlist = self.session.scalars(
                select(Playlist).where(Playlist.id == playlist_id).with_for_update()
            ).first()
            error = None
            if playlist is None:
                error = NotFoundError("Playlist not found")
            elif self.session.get(Track, track_id) is None:
                error = NotFoundError("Track not found")
            elif self._find_entry(playlist_id, track_id) is not None:
                error = BadRequestError("Track is already in playlist")
            if error is not None:
                self.session.rollback()
                raise error

            entry = PlaylistTrack(
                playlist_id=playlist_id,
                track_id=track_id,
                order=self._next_order(playlist_id),
                added_at=utcnow(),
            )
            self.session.add(entry)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                logger.info(
                    "Order collision adding track %s to playlist %s (attempt %d)",
                    track_id, playlist_id, attempt,
                )
                continue

            logger.info("Added track %s to playlist %s at #%d", track_id, playlist_id, entry.order)
            return entry

        raise ConflictError("Could not assign a position in the playlist; retry")

    def remove_track(self, playlist_id: int, track_id: int) -> None:
        entry = self._find_entry(playlist_id, track_id)
        if entry is None:
            raise NotFoundError("Track not found in playlist")
        self.session.delete(entry)
        self.session.commit()
        logger.info("Removed track %s from playlist %s", track_id, playlist_id)
