"""Unit tests for container utilities."""

import asyncio
import threading
import time

import pytest

from dockrun.services.container import iter_lines, run_in_daemon_thread, run_in_executor


class TestIterLines:
    """Test line reassembly from raw chunks."""

    def test_splits_on_newline(self):
        assert list(iter_lines([b"a\nb\n"])) == ["a", "b"]

    def test_reassembles_across_chunks(self):
        assert list(iter_lines([b"hel", b"lo\nwor", b"ld\n"])) == ["hello", "world"]

    def test_strips_carriage_return(self):
        """TTY output uses CRLF line endings."""
        assert list(iter_lines([b"hi\r\n", b"there\r\n"])) == ["hi", "there"]

    def test_yields_trailing_partial_line(self):
        assert list(iter_lines([b"done\nno newline"])) == ["done", "no newline"]

    def test_keeps_empty_lines(self):
        assert list(iter_lines([b"a\n\nb\n"])) == ["a", "", "b"]

    def test_skips_empty_chunks(self):
        assert list(iter_lines([b"", b"x\n", b""])) == ["x"]

    def test_invalid_utf8_is_replaced(self):
        assert list(iter_lines([b"caf\xe9\n"])) == ["caf�"]

    def test_multibyte_character_split_across_chunks(self):
        encoded = "naïve\n".encode("utf-8")
        assert list(iter_lines([encoded[:3], encoded[3:]])) == ["naïve"]

    def test_accepts_text_chunks(self):
        assert list(iter_lines(["a\nb"])) == ["a", "b"]

    def test_long_line_in_single_byte_chunks(self):
        """TTY log streams arrive one byte at a time."""
        payload = b"x" * 100_000 + b"\r\n" + b"y" * 10
        chunks = (payload[i : i + 1] for i in range(len(payload)))

        started = time.monotonic()
        lines = list(iter_lines(chunks))
        elapsed = time.monotonic() - started

        assert lines == ["x" * 100_000, "y" * 10]
        assert elapsed < 1.0


class TestRunInExecutor:
    """Test executor helpers."""

    @pytest.mark.asyncio
    async def test_run_in_executor_passes_arguments(self):
        def add(a, b, scale=1):
            return (a + b) * scale

        assert await run_in_executor(add, 1, 2) == 3
        assert await run_in_executor(add, 1, 2, scale=10) == 30

    @pytest.mark.asyncio
    async def test_run_in_daemon_thread_result(self):
        """The result is delivered on the event loop."""
        main_thread = threading.current_thread()

        def work():
            assert threading.current_thread() is not main_thread
            assert threading.current_thread().daemon
            return "ok"

        assert await asyncio.wait_for(run_in_daemon_thread(work, name="worker"), 5) == "ok"

    @pytest.mark.asyncio
    async def test_run_in_daemon_thread_exception(self):
        def fail():
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await asyncio.wait_for(run_in_daemon_thread(fail), 5)

    @pytest.mark.asyncio
    async def test_cancelled_future_ignores_late_result(self):
        """Cancelling the future abandons the thread's result."""
        release = threading.Event()
        finished = threading.Event()

        def slow():
            release.wait(5)
            finished.set()
            return "late"

        future = run_in_daemon_thread(slow)
        future.cancel()
        release.set()
        finished.wait(5)
        await asyncio.sleep(0.05)

        assert future.cancelled()
