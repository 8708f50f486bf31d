from __future__ import annotations
import logging
from typing import List, Optional
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from .config import settings
from .database import get_session, init_db
from .log_config import setup_logging
from .metadata import MetadataExtractor
from .repositories import PlaylistRepository, TrackRepository
from .schemas import MultiUploadError, PlaylistDto, PlaylistTrackDto, StatusDto, TrackDto
from .storage import FileStore, content_type_for
from .upload import UploadPipeline

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=f"{settings.APP_NAME} API", version=settings.VERSION)

init_db()


def get_file_store() -> FileStore:
    return FileStore(settings.AUDIO_DIR, max_size=settings.max_upload_size_bytes)


def get_metadata_extractor() -> MetadataExtractor:
    return MetadataExtractor()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """All input validation failures are reported as 400 Bad Request."""
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


def _attachment(content: bytes, content_type: str, download_name: str) -> Response:
    return Response(
        content=content,
        media_type=content_type,
        headers={"Content-Disposition": f"attachment; filename*=utf-8''{quote(download_name)}"},
    )


@app.get("/status", response_model=StatusDto)
def get_status():
    return StatusDto(application=settings.APP_NAME, version=settings.VERSION)


# Tracks


@app.get("/api/track", response_model=List[TrackDto])
def list_tracks(
    search: Optional[str] = None,
    page: Optional[int] = Query(None, ge=1),
    page_size: Optional[int] = Query(None, ge=1, alias="pageSize"),
    session: Session = Depends(get_session),
):
    return TrackRepository(session).list(search, page=page, page_size=page_size)


@app.get("/api/track/{track_id}", response_model=TrackDto)
def get_track(track_id: int, session: Session = Depends(get_session)):
    return TrackRepository(session).get(track_id)


@app.post("/api/track", response_model=TrackDto, status_code=201)
def create_track(body: TrackDto, response: Response, session: Session = Depends(get_session)):
    track = TrackRepository(session).create(body.model_dump())
    response.headers["Location"] = f"/api/track/{track.id}"
    return track


@app.put("/api/track/{track_id}", status_code=204)
def update_track(track_id: int, body: TrackDto, session: Session = Depends(get_session)):
    TrackRepository(session).update(track_id, body.id, body.model_dump())
    return Response(status_code=204)


@app.delete("/api/track/{track_id}", status_code=204)
def delete_track(track_id: int, session: Session = Depends(get_session)):
    TrackRepository(session).delete(track_id)
    return Response(status_code=204)


@app.get("/api/track/{track_id}/audio")
def get_track_audio(
    track_id: int,
    session: Session = Depends(get_session),
    store: FileStore = Depends(get_file_store),
):
    track = TrackRepository(session).get(track_id)
    content = store.read(track.file_path)
    return _attachment(
        content,
        content_type_for(track.file_path),
        f"{track.title}.{track.audio_format}",
    )


# Playlists


@app.get("/api/playlist", response_model=List[PlaylistDto])
def list_playlists(session: Session = Depends(get_session)):
    return PlaylistRepository(session).list()


@app.get("/api/playlist/{playlist_id}", response_model=PlaylistDto)
def get_playlist(playlist_id: int, session: Session = Depends(get_session)):
    return PlaylistRepository(session).get(playlist_id)


@app.post("/api/playlist", response_model=PlaylistDto, status_code=201)
def create_playlist(body: PlaylistDto, response: Response, session: Session = Depends(get_session)):
    playlist = PlaylistRepository(session).create(body.name, body.description)
    response.headers["Location"] = f"/api/playlist/{playlist.id}"
    return PlaylistDto(
        id=playlist.id,
        name=playlist.name,
        description=playlist.description,
        created_at=playlist.created_at,
        updated_at=playlist.updated_at,
    )


@app.put("/api/playlist/{playlist_id}", status_code=204)
def update_playlist(playlist_id: int, body: PlaylistDto, session: Session = Depends(get_session)):
    PlaylistRepository(session).update(playlist_id, body.id, body.model_dump())
    return Response(status_code=204)


@app.delete("/api/playlist/{playlist_id}", status_code=204)
def delete_playlist(playlist_id: int, session: Session = Depends(get_session)):
    PlaylistRepository(session).delete(playlist_id)
    return Response(status_code=204)


@app.post("/api/playlist/{playlist_id}/tracks/{track_id}", response_model=PlaylistTrackDto)
def add_track_to_playlist(playlist_id: int, track_id: int, session: Session = Depends(get_session)):
    return PlaylistRepository(session).add_track(playlist_id, track_id)


@app.delete("/api/playlist/{playlist_id}/tracks/{track_id}", status_code=204)
def remove_track_from_playlist(playlist_id: int, track_id: int, session: Session = Depends(get_session)):
    PlaylistRepository(session).remove_track(playlist_id, track_id)
    return Response(status_code=204)


# Uploads


@app.post("/api/upload/audio", response_model=TrackDto)
async def upload_audio(
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    store: FileStore = Depends(get_file_store),
    extractor: MetadataExtractor = Depends(get_metadata_extractor),
):
    data = await file.read()
    pipeline = UploadPipeline(session, store, extractor)
    try:
        return await run_in_threadpool(pipeline.upload_one, file.filename or "", data)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error uploading audio file %s", file.filename)
        raise HTTPException(status_code=500, detail="Internal server error while uploading file")


@app.post("/api/upload/multiple", response_model=List[TrackDto])
async def upload_multiple(
    files: List[UploadFile] = File(...),
    session: Session = Depends(get_session),
    store: FileStore = Depends(get_file_store),
    extractor: MetadataExtractor = Depends(get_metadata_extractor),
):
    payload = [(f.filename or "", await f.read()) for f in files]
    pipeline = UploadPipeline(session, store, extractor)
    uploaded, errors = await run_in_threadpool(pipeline.upload_many, payload)

    if errors:
        body = MultiUploadError(
            message="Some files could not be uploaded",
            errors=errors,
            uploaded_tracks=[TrackDto.model_validate(t) for t in uploaded],
        )
        return JSONResponse(status_code=400, content=body.model_dump(mode="json", by_alias=True))
    return uploaded


@app.get("/api/upload/download/{file_name}")
def download_audio_file(file_name: str, store: FileStore = Depends(get_file_store)):
    content = store.read(file_name)
    return _attachment(content, content_type_for(file_name), file_name)


@app.delete("/api/upload/file/{file_name}", status_code=204)
def delete_audio_file(
    file_name: str,
    session: Session = Depends(get_session),
    store: FileStore = Depends(get_file_store),
):
    tracks = TrackRepository(session)
    track = tracks.get_by_file_path(file_name)
    store.delete(file_name)
    tracks.delete(track.id)
    return Response(status_code=204)
