from __future__ import annotations
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class TrackDto(ApiModel):
    id: int = 0
    title: str = Field(..., min_length=1, max_length=200)
    artist: str = Field(..., min_length=1, max_length=200)
    album: str = Field("", max_length=200)
    duration_seconds: int = Field(0, ge=0)
    file_path: str = Field("", max_length=500)
    audio_format: str = Field("MP3", max_length=50)
    bitrate: int = Field(320, ge=0)
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None


class PlaylistDto(ApiModel):
    id: int = 0
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    created_at: Optional[UtcDatetime] = None
    updated_at: Optional[UtcDatetime] = None
    tracks: List[TrackDto] = Field(default_factory=list)


class PlaylistTrackDto(ApiModel):
    playlist_id: int
    track_id: int
    order: int
    added_at: UtcDatetime


class StatusDto(ApiModel):
    application: str = "SoundWave"
    version: str = "0.1.0"
    server_time_utc: UtcDatetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "OK"


class MultiUploadError(ApiModel):
    message: str
    errors: List[str]
    uploaded_tracks: List[TrackDto]
