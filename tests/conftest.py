import os

import pytest
from fastapi.testclient import TestClient

import auth
import ratelimit
from affirmations import GenerationError
from assembler import TrackAssembler
from audio import AudioProcessingError
from catalog import BackingTrackCatalog
from database import Database
from models import BackingTrack
from repository import TrackRepository, UserRepository
from speech import SynthesisError


class FakeSynthesizer:
    """Writes the text itself as the 'audio' so ordering shows up in outputs."""

    def __init__(self):
        self.calls = []
        self.fail_on = None

    async def synthesize_to_file(self, text, voice_id, output_path, settings=None):
        self.calls.append((text, voice_id, output_path, settings))
        if text == self.fail_on:
            raise SynthesisError("Failed to synthesize speech")
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        with open(output_path, "wb") as f:
            f.write(text.encode())
        return output_path


class FakeProcessor:
    """Records every call; outputs are simple byte transforms of the inputs."""

    def __init__(self, duration_s=2.0):
        self.calls = []
        self.fail_on = None
        self.duration_s = duration_s

    def _check(self, op, *args):
        self.calls.append((op, *args))
        if op == self.fail_on:
            raise AudioProcessingError(f"ffmpeg {op} failed: boom")

    @staticmethod
    def _write(path, data):
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)
        return path

    @staticmethod
    def _read(path):
        with open(path, "rb") as f:
            return f.read()

    def ops(self):
        return [c[0] for c in self.calls]

    async def insert_silence(self, input_path, output_path, seconds):
        self._check("insert_silence", input_path, output_path, seconds)
        return self._write(output_path, self._read(input_path) + f"|gap{seconds}|".encode())

    async def concatenate(self, input_paths, output_path):
        self._check("concatenate", list(input_paths), output_path)
        return self._write(output_path, b"".join(self._read(p) for p in input_paths))

    async def normalize(self, input_path, output_path, target_lufs=-16):
        self._check("normalize", input_path, output_path, target_lufs)
        return self._write(output_path, self._read(input_path))

    async def mix(self, voice_path, music_path, output_path, duck_level_db=-10):
        self._check("mix", voice_path, music_path, output_path, duck_level_db)
        return self._write(output_path, self._read(voice_path))

    async def convert_to_mp3(self, input_path, output_path, bitrate_kbps=128, comment=None):
        self._check("convert_to_mp3", input_path, output_path, bitrate_kbps, comment)
        return self._write(output_path, self._read(input_path))

    async def get_duration(self, path):
        return self.duration_s


class FakeGenerator:
    model = "test/model"

    def __init__(self):
        self.calls = []
        self.fail = False

    async def generate(self, prompt, count=20):
        self.calls.append((prompt, count))
        if self.fail:
            raise GenerationError("Failed to generate affirmations")
        return [f"I am affirmation {i}" for i in range(count)]


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture()
def db(tmp_path):
    database = Database(str(tmp_path / "db" / "test.db"))
    database.init_db()
    return database


@pytest.fixture()
def track_repo(db):
    return TrackRepository(db)


@pytest.fixture()
def user_repo(db):
    return UserRepository(db)


@pytest.fixture()
def catalog(tmp_path):
    backing = tmp_path / "backing"
    backing.mkdir()
    (backing / "ocean_waves.mp3").write_bytes(b"music")
    return BackingTrackCatalog(
        [BackingTrack(id="1", name="Ocean Waves", filename="ocean_waves.mp3", duration_s=300, tags=["nature"])],
        str(backing),
    )


@pytest.fixture()
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture()
def processor():
    return FakeProcessor()


@pytest.fixture()
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture()
def assembler(track_repo, synthesizer, processor, catalog, data_dir):
    return TrackAssembler(track_repo, synthesizer, processor, catalog, data_dir=data_dir)


@pytest.fixture()
def generator():
    return FakeGenerator()


@pytest.fixture()
def client(tmp_path, monkeypatch, track_repo, user_repo, catalog, synthesizer, processor, generator, assembler):
    monkeypatch.setattr("database.DB_PATH", str(tmp_path / "lifespan.db"))
    monkeypatch.setattr("routers.voice.VOICE_DIR", str(tmp_path / "voice"))
    ratelimit.limiter.reset()

    from main import app

    with TestClient(app) as test_client:
        app.state.tracks = track_repo
        app.state.users = user_repo
        app.state.catalog = catalog
        app.state.synthesizer = synthesizer
        app.state.processor = processor
        app.state.generator = generator
        app.state.assembler = assembler
        yield test_client
