import os

import pytest

from tests.fakes import FakeProvider, FakeScheduler, build_rig


@pytest.fixture
def setup_test_env():
    """Setup test environment variables"""
    original_env = os.environ.copy()

    os.environ["LLM_API_KEY"] = "test_key_12345"
    os.environ["COMMAND_MODE"] = "buffered"
    os.environ["WHISPER_MODEL_SIZE"] = "tiny.en"

    yield

    # Restore original environment
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def rig():
    """Orchestrator wired to a push source, started and idle."""
    rig = build_rig()
    rig.orchestrator.start()
    yield rig
    rig.orchestrator.close()
