# tests/conftest.py - Pytest configuration and fixtures

from typing import List

import pytest

from config import ReconcilerConfig

# 43-character base64url identifiers
PROCESS_ID = "Pr0cess" + "x" * 36
MESSAGE_ID = "Msg_" + "y" * 38 + "-"


class RecordingObserver:
    """Progress observer that remembers every call."""

    def __init__(self):
        self.total = None
        self.updates: List[int] = []
        self.stopped = False

    def start(self, total: int) -> None:
        self.total = total

    def update(self, completed: int) -> None:
        self.updates.append(completed)

    def stop(self) -> None:
        self.stopped = True


class SleepRecorder:
    """Stand-in for asyncio.sleep that returns immediately."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def process_id() -> str:
    return PROCESS_ID


@pytest.fixture
def message_id() -> str:
    return MESSAGE_ID


@pytest.fixture
def config() -> ReconcilerConfig:
    """Config pointing at fake endpoints, with fast retries."""
    return ReconcilerConfig(
        cu_url="https://cu.example",
        hyperbeam_base_url="https://hb.example",
        concurrency=4,
        retry_attempts=2,
        retry_delay_ms=0,
        timeout_ms=5000,
        cu_url_a="https://cu-a.example",
        cu_url_b="https://cu-b.example",
    )


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def no_sleep() -> SleepRecorder:
    return SleepRecorder()


# Configure pytest
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "asyncio: async tests")
    config.addinivalue_line("markers", "integration: tests that drive the CLI end to end")
