import io
import os
import tempfile
import wave

import pytest

# must be set before backend.app is imported anywhere
_TMP = tempfile.mkdtemp(prefix="soundwave-tests-")
os.environ["SOUNDWAVE_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'soundwave.db')}"
os.environ["SOUNDWAVE_AUDIO_DIR"] = os.path.join(_TMP, "AudioFiles")
os.environ["SOUNDWAVE_LOG_LEVEL"] = "WARNING"

from sqlalchemy.orm import sessionmaker  # noqa: E402

from backend.app.database import init_db, make_engine  # noqa: E402


def make_wav(seconds: int = 1, rate: int = 8000) -> bytes:
    """Untagged mono 16-bit PCM WAV of silence."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x00\x00" * rate * seconds)
    return buf.getvalue()


@pytest.fixture
def wav_bytes():
    return make_wav()


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'unit.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()
