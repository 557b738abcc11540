"""Pytest configuration and shared fixtures."""

import asyncio
import queue
import threading
from typing import List, Optional
from unittest.mock import MagicMock

import docker
import pytest

from dockrun.config import DockerConfig, LoggingConfig
from dockrun.services.container import CleanupCoordinator, ContainerHandle, WaitResult
from dockrun.utils.logging import setup_logging

CONTAINER_ID = "3f1c2b7e9d4a" + "0" * 52


class FakeLogStream:
    """Closable, blocking iterator of log chunks, like docker-py's log stream."""

    _END = object()

    def __init__(self):
        self._chunks = queue.Queue()
        self.closed = False

    def feed(self, *chunks: bytes) -> None:
        for chunk in chunks:
            self._chunks.put(chunk)

    def end(self) -> None:
        self._chunks.put(self._END)

    def close(self) -> None:
        self.closed = True
        self._chunks.put(self._END)

    def __iter__(self):
        return self

    def __next__(self) -> bytes:
        item = self._chunks.get(timeout=10)
        if item is self._END:
            self._chunks.put(self._END)
            raise StopIteration
        return item


class FakeRuntime:
    """Scripted stand-in for RuntimeClient.

    Records every call in order. ``exit``/``fault`` end the log stream and
    release ``wait_not_running``, as the engine does when a container stops.
    """

    def __init__(self):
        self.calls: List[tuple] = []
        self._lock = threading.Lock()
        self.search_results = [{"name": "alpine", "is_official": True}]
        self.local_images = set()
        self.pull_progress = [
            {"status": "Pulling fs layer", "id": "31e352740f53"},
            {"status": "Download complete", "id": "31e352740f53"},
        ]
        self.container_id = CONTAINER_ID
        self.create_error: Optional[Exception] = None
        self.start_error: Optional[Exception] = None
        self.logs_error: Optional[Exception] = None
        self.wait_error: Optional[Exception] = None
        self.stop_error: Optional[Exception] = None
        self.remove_error: Optional[Exception] = None
        self.logs = FakeLogStream()
        self._stopped = threading.Event()
        self._wait_result: Optional[WaitResult] = None

    # Scripting helpers

    def emit(self, *chunks: bytes) -> None:
        self.logs.feed(*chunks)

    def exit(self, code: int) -> None:
        self._finish(WaitResult(status_code=code))

    def fault(self, message: str) -> None:
        self._finish(WaitResult(status_code=None, error=message))

    def fail_wait(self, error: Exception) -> None:
        """Make the pending wait call raise ``error``."""
        self.wait_error = error
        self._stopped.set()

    def count(self, name: str) -> int:
        return len([c for c in self.calls if c[0] == name])

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def _finish(self, result: WaitResult) -> None:
        with self._lock:
            if self._stopped.is_set():
                return
            self._wait_result = result
        self.logs.end()
        self._stopped.set()

    def _record(self, name: str, *args) -> None:
        with self._lock:
            self.calls.append((name, *args))

    # RuntimeClient interface

    def search_image(self, ref, limit=1):
        self._record("search_image", ref, limit)
        return list(self.search_results)

    def image_exists_locally(self, ref):
        self._record("image_exists_locally", ref)
        return ref in self.local_images

    def pull_image(self, ref):
        self._record("pull_image", ref)
        return iter(list(self.pull_progress))

    def create_container(self, image, command, entrypoint, name, tty=True, labels=None):
        self._record("create_container", image, tuple(command), tuple(entrypoint), name, tty)
        if self.create_error:
            raise self.create_error
        return self.container_id

    def start_container(self, container_id):
        self._record("start_container", container_id)
        if self.start_error:
            raise self.start_error

    def stream_logs(self, container_id, stdout=True, stderr=True, follow=True):
        self._record("stream_logs", container_id)
        if self.logs_error:
            raise self.logs_error
        return self.logs

    def wait_not_running(self, container_id):
        self._record("wait_not_running", container_id)
        self._stopped.wait(timeout=10)
        if self.wait_error:
            raise self.wait_error
        return self._wait_result or WaitResult(None, "fake wait timed out")

    def stop_container(self, container_id, timeout=None):
        self._record("stop_container", container_id, timeout)
        if self.stop_error:
            raise self.stop_error
        self.exit(143)

    def remove_container(self, container_ref, force=True):
        self._record("remove_container", container_ref, force)
        if self.remove_error:
            raise self.remove_error
        self.exit(137)

    def close(self):
        self._record("close")


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Send structured logs to stderr so stdout only carries container output."""
    setup_logging(LoggingConfig(log_level="DEBUG", log_format="console"))


@pytest.fixture
def runtime():
    """Scripted runtime client."""
    return FakeRuntime()


@pytest.fixture
def docker_config():
    """Docker settings with short timeouts for tests."""
    return DockerConfig(
        container_shell="/bin/sh",
        container_name_prefix="dockrun-test",
        pull_image=True,
        log_drain_timeout=2.0,
    )


@pytest.fixture
def scope():
    """Owning cancellable scope."""
    return asyncio.Event()


@pytest.fixture
def cleanup(runtime):
    return CleanupCoordinator(runtime)


@pytest.fixture
def make_handle(runtime, cleanup, docker_config, scope):
    """Factory for handles wired to the fake runtime."""

    def _make(image="alpine:3.18", command="echo hi && exit 0"):
        return ContainerHandle(
            scope, image, command, client=runtime, cleanup=cleanup, config=docker_config
        )

    return _make


@pytest.fixture
def mock_docker_client():
    """Mock docker-py client; tests configure ``client.api``."""
    client = MagicMock(spec=docker.DockerClient)
    client.api = MagicMock()
    client.api.base_url = "http+docker://localhost"
    client.api.api_version = "1.44"
    return client


async def _collect(stream, timeout: float = 5.0):
    async def _drain():
        return [event async for event in stream]

    return await asyncio.wait_for(_drain(), timeout)


@pytest.fixture
def collect():
    """Drain an event stream into a list (with a timeout)."""
    return _collect


@pytest.fixture
def running_handle(make_handle):
    """Create and start a handle wired to the fake runtime."""

    async def _start(**kwargs):
        handle = make_handle(**kwargs)
        await handle.create()
        await handle.start()
        return handle

    return _start
