"""Shared fixtures."""
import pytest

from sendvideos.config import Settings
from sendvideos.models import UploaderConfig

from .fakes import BASE_URL, FakeServer


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def settings():
    return Settings(base_url=BASE_URL, remote_upload=True)


@pytest.fixture
def fast_config():
    """Tiny chunks and no waiting."""
    return UploaderConfig(
        chunk_size=10,
        file_ready_interval=0,
        file_ready_timeout=1.0,
        join_timeout=5.0,
        ping_interval=0.05,
        poll_interval=0,
        poll_max_attempts=5,
    )
