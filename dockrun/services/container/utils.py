"""Shared utilities for container operations.

This module contains common helpers used by the container handle, the
event multiplexer and the cleanup coordinator.
"""

import asyncio
import functools
import threading
from typing import Iterable, Iterator, Union


async def run_in_executor(func, *args, **kwargs):
    """
    Run a blocking function in the default thread pool executor.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        Result of the function
    """
    loop = asyncio.get_running_loop()
    if kwargs:
        func = functools.partial(func, **kwargs)
    return await loop.run_in_executor(None, func, *args)


def run_in_daemon_thread(func, *args, name: str = None) -> asyncio.Future:
    """
    Run a blocking function on its own daemon thread.

    Unlike the default executor, an abandoned call does not hold up
    interpreter shutdown. Use it for calls that may block for as long as a
    container runs.

    Args:
        func: Blocking function to run
        *args: Arguments to pass to the function
        name: Thread name

    Returns:
        Future resolved on the running loop with the function's result
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _resolve(result, error):
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _target():
        result, error = None, None
        try:
            result = func(*args)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(_resolve, result, error)
        except RuntimeError:
            # Event loop already closed; nobody is waiting any more
            pass

    threading.Thread(target=_target, name=name, daemon=True).start()
    return future


def iter_lines(
    chunks: Iterable[Union[bytes, str]],
    encoding: str = "utf-8",
) -> Iterator[str]:
    """
    Reassemble a stream of arbitrary chunks into text lines.

    Lines are split on ``\\n`` with a trailing ``\\r`` removed (TTY output
    uses CRLF). A final partial line is yielded when the stream ends.

    Args:
        chunks: Iterable of byte (or text) chunks, in arrival order
        encoding: Encoding used to decode each line

    Yields:
        Lines without their terminator
    """
    pending = bytearray()
    for chunk in chunks:
        if not chunk:
            continue
        if isinstance(chunk, str):
            chunk = chunk.encode(encoding)
        if b"\n" not in chunk:
            pending += chunk
            continue
        *lines, tail = chunk.split(b"\n")
        pending += lines[0]
        yield _decode_line(bytes(pending), encoding)
        for line in lines[1:]:
            yield _decode_line(line, encoding)
        pending = bytearray(tail)
    if pending:
        yield _decode_line(bytes(pending), encoding)


def _decode_line(line: bytes, encoding: str) -> str:
    if line.endswith(b"\r"):
        line = line[:-1]
    return line.decode(encoding, errors="replace")
