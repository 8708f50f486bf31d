"""
Tests for audio upload, download and stored-file deletion
"""
import os

from fastapi.testclient import TestClient

from backend.app.config import settings
from backend.app.main import app
from backend.app.metadata import UNKNOWN_ALBUM, UNKNOWN_ARTIST

from conftest import make_wav

client = TestClient(app)


def _stored_files():
    return set(os.listdir(settings.AUDIO_DIR))


def test_upload_untagged_wav_uses_filename_and_placeholders():
    files = {"file": ("Morning Walk.wav", make_wav(seconds=2), "audio/wav")}
    resp = client.post("/api/upload/audio", files=files)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["title"] == "Morning Walk"
    assert data["artist"] == UNKNOWN_ARTIST
    assert data["album"] == UNKNOWN_ALBUM
    assert data["durationSeconds"] == 2
    assert data["bitrate"] == 128
    assert data["audioFormat"] == "wav"
    assert data["filePath"].endswith(".wav")
    assert data["filePath"] != "Morning Walk.wav"
    assert data["filePath"] in _stored_files()


def test_upload_corrupt_audio_still_creates_track():
    files = {"file": ("broken.mp3", b"definitely not audio " * 64, "audio/mpeg")}
    resp = client.post("/api/upload/audio", files=files)
    assert resp.status_code == 200
    data = resp.json()
    assert data["title"] == "broken"
    assert data["artist"] == UNKNOWN_ARTIST
    assert data["durationSeconds"] == 0
    assert data["bitrate"] == 0


def test_upload_rejects_disallowed_extension():
    before_files = _stored_files()
    before_tracks = len(client.get("/api/track").json())

    files = {"file": ("notes.txt", b"hello", "text/plain")}
    resp = client.post("/api/upload/audio", files=files)
    assert resp.status_code == 400

    assert _stored_files() == before_files
    assert len(client.get("/api/track").json()) == before_tracks


def test_upload_extension_check_is_case_insensitive():
    files = {"file": ("LOUD.WAV", make_wav(), "audio/wav")}
    resp = client.post("/api/upload/audio", files=files)
    assert resp.status_code == 200
    assert resp.json()["filePath"].endswith(".wav")


def test_upload_empty_file_rejected():
    files = {"file": ("silence.mp3", b"", "audio/mpeg")}
    resp = client.post("/api/upload/audio", files=files)
    assert resp.status_code == 400


def test_upload_without_file_is_bad_request():
    resp = client.post("/api/upload/audio")
    assert resp.status_code == 400


def test_upload_multiple_all_succeed():
    files = [
        ("files", ("one.wav", make_wav(), "audio/wav")),
        ("files", ("two.wav", make_wav(), "audio/wav")),
    ]
    resp = client.post("/api/upload/multiple", files=files)
    assert resp.status_code == 200
    titles = [t["title"] for t in resp.json()]
    assert titles == ["one", "two"]


def test_upload_multiple_partial_failure_reports_both():
    files = [
        ("files", ("good.wav", make_wav(), "audio/wav")),
        ("files", ("bad.exe", b"MZ", "application/octet-stream")),
        ("files", ("also good.wav", make_wav(), "audio/wav")),
    ]
    resp = client.post("/api/upload/multiple", files=files)
    assert resp.status_code == 400
    data = resp.json()
    assert data["message"]
    assert len(data["errors"]) == 1
    assert "bad.exe" in data["errors"][0]
    assert [t["title"] for t in data["uploadedTracks"]] == ["good", "also good"]


def test_download_and_track_audio():
    content = make_wav()
    resp = client.post("/api/upload/audio", files={"file": ("Dl Test.wav", content, "audio/wav")})
    track = resp.json()

    resp = client.get(f"/api/upload/download/{track['filePath']}")
    assert resp.status_code == 200
    assert resp.content == content
    assert resp.headers["content-type"] == "audio/wav"

    resp = client.get(f"/api/track/{track['id']}/audio")
    assert resp.status_code == 200
    assert resp.content == content
    assert "Dl%20Test.wav" in resp.headers["content-disposition"]


def test_download_missing_file():
    assert client.get("/api/upload/download/nope.mp3").status_code == 404
    assert client.get("/api/upload/download/..%2Fsoundwave.db").status_code == 404


def test_delete_file_removes_file_and_record():
    resp = client.post("/api/upload/audio", files={"file": ("gone.wav", make_wav(), "audio/wav")})
    track = resp.json()
    stored = track["filePath"]

    playlist = client.post("/api/playlist", json={"name": "With Upload"}).json()
    client.post(f"/api/playlist/{playlist['id']}/tracks/{track['id']}")

    resp = client.delete(f"/api/upload/file/{stored}")
    assert resp.status_code == 204
    assert stored not in _stored_files()
    assert client.get(f"/api/track/{track['id']}").status_code == 404
    assert client.get(f"/api/playlist/{playlist['id']}").json()["tracks"] == []

    assert client.delete(f"/api/upload/file/{stored}").status_code == 404


def test_delete_file_tolerates_missing_disk_file():
    resp = client.post("/api/upload/audio", files={"file": ("vanish.wav", make_wav(), "audio/wav")})
    track = resp.json()
    os.remove(os.path.join(settings.AUDIO_DIR, track["filePath"]))

    resp = client.delete(f"/api/upload/file/{track['filePath']}")
    assert resp.status_code == 204
    assert client.get(f"/api/track/{track['id']}").status_code == 404
