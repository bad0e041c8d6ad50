"""Shared pytest fixtures for all tests."""

import pytest
from fastapi.testclient import TestClient

from video_backend.app.clients.redis_client import UploadProgressStore
from video_backend.app.controllers.upload_controller import UploadController
from video_backend.app.routes.upload_file_route import get_upload_controller
from video_backend.app.server import app
from video_backend.app.utils.chunk_reassembler import ChunkReassembler
from video_backend.config.config import Settings


SAMPLE_REPORT = (
    "streams.stream.0.width=800\n"
    "streams.stream.0.height=600\n"
    "streams.stream.0.duration=533.466667\n"
    "format.bit_rate=598562\n"
    "format.size=39930706\n"
)


class InMemoryRedis:
    """Async stand-in for the handful of redis.asyncio.Redis calls we make."""

    def __init__(self):
        self.data = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value

    async def delete(self, key):
        self.data.pop(key, None)


class StubProbeClient:
    def __init__(self, report=SAMPLE_REPORT, error=None):
        self.report = report
        self.error = error
        self.calls = []

    async def probe(self, file_path):
        self.calls.append(str(file_path))
        if self.error is not None:
            raise self.error
        return self.report


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        UPLOAD_DIR=str(tmp_path / "uploads"),
        MERGING_CHUNK_SIZE=7,
        MAX_CHUNK_SIZE=1024,
        MAX_FILESIZE=4096,
        PROBE_TIMEOUT=5,
    )


@pytest.fixture
def reassembler(test_settings):
    return ChunkReassembler(
        upload_dir=test_settings.UPLOAD_DIR,
        block_size=test_settings.MERGING_CHUNK_SIZE,
        part_index_width=test_settings.PART_INDEX_WIDTH,
    )


@pytest.fixture
def write_parts(reassembler):
    """Write the given byte strings as parts 0..n-1 of a session."""

    def _write(session_id, parts, skip=()):
        for index, data in enumerate(parts):
            if index in skip:
                continue
            path = reassembler.part_path(session_id, index)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

    return _write


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def probe_client():
    return StubProbeClient()


@pytest.fixture
def controller(test_settings, fake_redis, probe_client):
    return UploadController(
        test_settings,
        progress_store=UploadProgressStore(fake_redis, ttl=test_settings.CHUNK_TTL),
        probe_client=probe_client,
    )


@pytest.fixture
def client(controller):
    app.dependency_overrides[get_upload_controller] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
