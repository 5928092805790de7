"""Pytest fixtures for uploadq tests."""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping

import pytest
import pytest_asyncio

from uploadq import UploadQueue, UploadConfig, RetryConfig, FileInfo


@dataclass
class PendingSend:
    """One in-flight call to FakeTransport.send."""
    file: FileInfo
    on_progress: Callable[[float], None]
    future: asyncio.Future = field(repr=False)

    def progress(self, percent: float) -> None:
        self.on_progress(percent)

    def resolve(self, result: Mapping[str, Any]) -> None:
        if not self.future.done():
            self.future.set_result(result)

    def fail(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class FakeTransport:
    """Transport whose transfers are finished by the test."""

    def __init__(self):
        self.calls: List[PendingSend] = []
        self.cancelled: List[str] = []

    async def send(self, file, on_progress):
        call = PendingSend(file, on_progress, asyncio.get_running_loop().create_future())
        self.calls.append(call)
        try:
            return await call.future
        except asyncio.CancelledError:
            self.cancelled.append(file.name)
            raise


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


async def _wait_for_calls(transport: FakeTransport, count: int, timeout: float = 3.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while len(transport.calls) < count:
        if loop.time() > deadline:
            raise AssertionError(f"expected {count} transport calls, got {len(transport.calls)}")
        await asyncio.sleep(0.005)


@pytest.fixture
def settle():
    """Lets pending transfer tasks run up to their next await."""
    return _settle


@pytest.fixture
def wait_for_calls():
    """Waits until the fake transport has received N calls."""
    return _wait_for_calls


@pytest.fixture
def fake_transport():
    """Returns a transport driven by the test."""
    return FakeTransport()


@pytest.fixture
def clock():
    """Returns a manual clock starting at 0."""
    return FakeClock()


@pytest.fixture
def fast_config():
    """Default policy with millisecond backoff."""
    return UploadConfig(retry=RetryConfig(base_delay_ms=10, max_delay_ms=40))


@pytest.fixture
def make_file():
    """Factory for candidate files."""
    def factory(name: str = "document.pdf", size: int = 1024, content_type: str = "application/pdf"):
        return FileInfo(name=name, size=size, content_type=content_type)
    return factory


@pytest_asyncio.fixture
async def queue(fake_transport, fast_config, clock):
    """Queue wired to the fake transport; cancels leftovers on teardown."""
    upload_queue = UploadQueue(fake_transport, fast_config, clock=clock)
    yield upload_queue
    upload_queue.clear_all()
    await _settle()
