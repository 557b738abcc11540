"""Signal handling: SIGINT/SIGTERM cancel the owning scope."""

import asyncio
import signal
from typing import Iterable

import structlog

logger = structlog.get_logger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def install_signal_handlers(
    scope: asyncio.Event,
    signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS,
) -> None:
    """Set ``scope`` when one of ``signals`` arrives.

    Must be called from within the running event loop.
    """
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.add_signal_handler(sig, _request_shutdown, scope, sig)


def remove_signal_handlers(signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)


def _request_shutdown(scope: asyncio.Event, sig: signal.Signals) -> None:
    if scope.is_set():
        logger.warning("Shutdown already requested", signal=sig.name)
        return
    logger.info("Shutdown requested", signal=sig.name)
    scope.set()
