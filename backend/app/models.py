from __future__ import annotations
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Track(Base):
    __tablename__ = "tracks"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    artist = Column(String(200), nullable=False)
    album = Column(String(200), nullable=False, default="")
    duration_seconds = Column(Integer, nullable=False, default=0)
    file_path = Column(String(500), nullable=False, default="")
    audio_format = Column(String(50), nullable=False, default="MP3")
    bitrate = Column(Integer, nullable=False, default=320)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    memberships = relationship(
        "PlaylistTrack",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_tracks_title_artist", "title", "artist"),)
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Track {self.id} {self.artist} - {self.title}>"


class Playlist(Base):
    __tablename__ = "playlists"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    entries = relationship(
        "PlaylistTrack",
        order_by="PlaylistTrack.order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def tracks(self):
        return [entry.track for entry in self.entries]

    def __repr__(self):
        return f"<Playlist {self.id} {self.name}>"


class PlaylistTrack(Base):
    """Membership of one track in one playlist at a given position."""

    __tablename__ = "playlist_tracks"

    id = Column(Integer, primary_key=True)
    playlist_id = Column(Integer, ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False)
    track_id = Column(Integer, ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False)
    order = Column(Integer, nullable=False)
    added_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    track = relationship("Track", lazy="joined", viewonly=True)

    __table_args__ = (
        UniqueConstraint("playlist_id", "track_id", name="uq_playlist_tracks_pair"),
        UniqueConstraint("playlist_id", "order", name="uq_playlist_tracks_order"),
    )

    def __repr__(self):
        return f"<PlaylistTrack {self.playlist_id}:{self.track_id} #{self.order}>"
