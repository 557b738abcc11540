"""Log/event multiplexing for a running container.

One running container produces a single ordered sequence of events:

1. A log scanner thread follows the container's combined stdout/stderr and
   hands each line to the event loop.
2. A coordinating task races the runtime's wait call (clean exit or
   runtime-reported error) against cancellation of the owning scope.
3. The first signal decides the one ``Terminated`` event. From then on the
   stream is closed: late log lines are dropped and the scanner is stopped.

Lines are buffered in an unbounded ``asyncio.Queue`` on the loop, so the
scanner thread never blocks on a slow or departed consumer.
"""

import asyncio
import threading
from typing import Callable, Optional

import structlog

from ...models.errors import LogStreamError, RuntimeReportedError, StopError
from ...models.events import (
    CancelledByCaller,
    Event,
    LogLine,
    RuntimeFault,
    Terminated,
    TerminationReason,
    classify_exit_code,
)
from .cleanup import CleanupCoordinator
from .client import RuntimeClient
from .utils import iter_lines, run_in_daemon_thread, run_in_executor

logger = structlog.get_logger(__name__)

COORDINATION_CANCELLED = "event coordination cancelled"


class EventStream:
    """Single-consumer async iterator over one container's events.

    Iteration ends right after the ``Terminated`` event. The stream is not
    restartable.

    Attributes:
        container_id: Container the events belong to
        done: Set once the consumer has received ``Terminated``
    """

    def __init__(self, container_id: str):
        self.container_id = container_id
        self.done = asyncio.Event()
        self._queue: "asyncio.Queue[Event]" = asyncio.Queue()
        self._decided = asyncio.Event()
        self._reason: Optional[TerminationReason] = None
        self._delivered = False
        self._task: Optional[asyncio.Task] = None
        self._abandon: Optional[asyncio.Event] = None

    @property
    def closed(self) -> bool:
        """Whether the terminating event has been decided."""
        return self._reason is not None

    @property
    def reason(self) -> Optional[TerminationReason]:
        return self._reason

    def push_line(self, text: str) -> bool:
        """Queue a log line unless the stream is already closed."""
        if self.closed:
            return False
        self._queue.put_nowait(LogLine(text))
        return True

    def terminate(self, reason: TerminationReason) -> bool:
        """Queue the terminating event. Only the first call has an effect."""
        if self.closed:
            return False
        self._reason = reason
        self._queue.put_nowait(Terminated(reason))
        self._decided.set()
        return True

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        if self._delivered:
            raise StopAsyncIteration
        event = await self._queue.get()
        if isinstance(event, Terminated):
            self._delivered = True
            self.done.set()
        return event

    async def wait(self) -> TerminationReason:
        """Wait until the terminating event is decided and return its reason."""
        await self._decided.wait()
        return self._reason

    async def aclose(self) -> None:
        """Stop following the container.

        The container is stopped and removed as on cancellation of the
        owning scope, unless it already terminated.
        """
        if self._abandon is not None:
            self._abandon.set()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)


class LogScanner:
    """Follows a container's log stream on a worker thread.

    Args:
        client: Runtime client used to open the stream
        container_id: Container to follow
        loop: Event loop that receives the lines
        deliver: Called on the loop thread with each line
    """

    def __init__(
        self,
        client: RuntimeClient,
        container_id: str,
        loop: asyncio.AbstractEventLoop,
        deliver: Callable[[str], object],
    ):
        self._client = client
        self._container_id = container_id
        self._loop = loop
        self._deliver = deliver
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._stream = None
        self._finished = asyncio.Event()
        self._thread = threading.Thread(
            target=self._run,
            name=f"log-scanner-{container_id[:12]}",
            daemon=True,
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        """Stop delivering lines and close the underlying stream."""
        self._stop.set()
        self._close_stream()

    async def drain(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the stream to end by itself.

        Returns:
            True if the scanner reached the end of the stream
        """
        try:
            await asyncio.wait_for(self._finished.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            logger.debug(
                "Log stream still open after drain timeout",
                container_id=self._container_id[:12],
                timeout=timeout,
            )
            return False

    def _run(self) -> None:
        try:
            self._scan()
        finally:
            self._notify(self._finished.set)

    def _scan(self) -> None:
        try:
            stream = self._client.stream_logs(self._container_id)
        except LogStreamError as e:
            logger.warning(
                "Log stream unavailable",
                container_id=self._container_id[:12],
                error=e.message,
            )
            return

        with self._lock:
            self._stream = stream
        if self._stop.is_set():
            self._close_stream()
            return

        try:
            for line in iter_lines(stream):
                if self._stop.is_set():
                    break
                if not self._notify(self._deliver, line):
                    break
        except Exception as e:
            # Closing the stream from stop() interrupts the read with an error
            if not self._stop.is_set():
                logger.warning(
                    "Log stream failed",
                    container_id=self._container_id[:12],
                    error_type=LogStreamError.__name__,
                    error=str(e),
                )
        finally:
            self._close_stream()

    def _notify(self, callback, *args) -> bool:
        try:
            self._loop.call_soon_threadsafe(callback, *args)
            return True
        except RuntimeError:
            # Event loop already closed
            self._stop.set()
            return False

    def _close_stream(self) -> None:
        with self._lock:
            stream, self._stream = self._stream, None
        if stream is None:
            return
        close = getattr(stream, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as e:
            logger.debug(
                "Error closing log stream",
                container_id=self._container_id[:12],
                error=str(e),
            )


class EventMultiplexer:
    """Fans log output and termination signals into one ``EventStream``.

    Args:
        client: Runtime client shared with the container handle
        cleanup: Coordinator used for forced removal
        container_id: Running container to observe
        scope: Owning cancellable scope; set() requests cancellation
        stop_timeout: Seconds passed to the stop request (None: engine default)
        drain_timeout: Seconds to wait for buffered log output before the
            terminating event is emitted
        on_terminated: Called with the reason once it is decided
    """

    def __init__(
        self,
        client: RuntimeClient,
        cleanup: CleanupCoordinator,
        container_id: str,
        scope: asyncio.Event,
        stop_timeout: Optional[int] = None,
        drain_timeout: float = 2.0,
        on_terminated: Optional[Callable[[TerminationReason], None]] = None,
    ):
        self._client = client
        self._cleanup = cleanup
        self._container_id = container_id
        self._scope = scope
        self._stop_timeout = stop_timeout
        self._drain_timeout = drain_timeout
        self._on_terminated = on_terminated
        self._abandon = asyncio.Event()
        self._stream: Optional[EventStream] = None
        self._scanner: Optional[LogScanner] = None

    def start(self) -> EventStream:
        """Start the scanner and the coordinating task."""
        if self._stream is not None:
            raise RuntimeError("multiplexer already started")

        loop = asyncio.get_running_loop()
        stream = EventStream(self._container_id)
        stream._abandon = self._abandon
        self._stream = stream
        self._scanner = LogScanner(
            self._client, self._container_id, loop, stream.push_line
        )
        self._scanner.start()
        stream._task = asyncio.create_task(
            self._coordinate(), name=f"events-{self._container_id[:12]}"
        )
        return stream

    async def _coordinate(self) -> None:
        stream = self._stream
        try:
            reason = await self._race()
        except asyncio.CancelledError:
            # Nothing was stopped or removed; the owner still has to clean up
            self._finish(RuntimeFault(COORDINATION_CANCELLED), notify=False)
            raise
        except Exception as e:
            logger.exception(
                "Event coordination failed", container_id=self._container_id[:12]
            )
            reason = RuntimeFault(str(e))
        self._finish(reason)
        logger.info(
            "Container terminated",
            container_id=self._container_id[:12],
            reason=stream.reason.kind,
        )

    async def _race(self) -> TerminationReason:
        wait_task = run_in_daemon_thread(
            self._client.wait_not_running,
            self._container_id,
            name=f"exit-watcher-{self._container_id[:12]}",
        )
        cancel_task = asyncio.ensure_future(self._wait_cancelled())
        try:
            done, _ = await asyncio.wait(
                {wait_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
            # A container that already stopped wins over a concurrent cancel
            if wait_task in done:
                return await self._on_wait_finished(wait_task)
            return await self._on_cancelled()
        finally:
            cancel_task.cancel()
            if not wait_task.done():
                # The watcher thread returns once the container is gone
                wait_task.cancel()

    async def _wait_cancelled(self) -> None:
        scope_task = asyncio.ensure_future(self._scope.wait())
        abandon_task = asyncio.ensure_future(self._abandon.wait())
        try:
            await asyncio.wait(
                {scope_task, abandon_task}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            scope_task.cancel()
            abandon_task.cancel()

    async def _on_wait_finished(self, wait_task: asyncio.Future) -> TerminationReason:
        try:
            result = wait_task.result()
        except RuntimeReportedError as e:
            logger.error(
                "Runtime reported an error",
                container_id=self._container_id[:12],
                error=e.message,
            )
            await self._scanner.drain(self._drain_timeout)
            return RuntimeFault(e.message)

        if result.error:
            logger.error(
                "Runtime reported an error",
                container_id=self._container_id[:12],
                error=result.error,
            )
            await self._scanner.drain(self._drain_timeout)
            return RuntimeFault(result.error)
        if result.status_code is None:
            return RuntimeFault("runtime reported no exit status")

        reason = classify_exit_code(result.status_code)
        logger.info(
            "Container stopped running",
            container_id=self._container_id[:12],
            status_code=result.status_code,
        )
        await self._scanner.drain(self._drain_timeout)
        await self._cleanup.remove(self._container_id)
        return reason

    async def _on_cancelled(self) -> TerminationReason:
        logger.info(
            "Cancellation requested, stopping container",
            container_id=self._container_id[:12],
        )
        try:
            await run_in_executor(
                self._client.stop_container, self._container_id, self._stop_timeout
            )
        except StopError as e:
            logger.error(
                "Container stop failed",
                container_id=self._container_id[:12],
                error=e.message,
            )
            return RuntimeFault(e.message)

        await self._scanner.drain(self._drain_timeout)
        await self._cleanup.remove(self._container_id)
        return CancelledByCaller()

    def _finish(self, reason: TerminationReason, notify: bool = True) -> None:
        # Close the stream before stopping the scanner; both run on the loop
        # thread, so no line can be queued after Terminated.
        if not self._stream.terminate(reason):
            return
        self._scanner.stop()
        if notify and self._on_terminated is not None:
            self._on_terminated(reason)
