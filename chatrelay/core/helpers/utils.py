import asyncio
import contextlib
import logging
import signal
import sys
import threading
from types import FrameType
from typing import Generator

SHUTDOWN_SIGNALS = (
    signal.SIGINT,
    signal.SIGTERM,
)

if sys.platform == "win32":
    SHUTDOWN_SIGNALS += (signal.SIGBREAK,)


@contextlib.contextmanager
def setup_signal_handler(loop: asyncio.AbstractEventLoop) -> Generator[asyncio.Event, None, None]:
    """
    Turn SIGINT/SIGTERM into a stop event for the duration of the block.

    The event is set through `loop.call_soon_threadsafe` so that a loop
    blocked in its selector wakes up immediately. Original handlers are
    restored on exit. Outside the main thread signals cannot be installed,
    and the event is only ever set by the caller.
    """
    stop_event = asyncio.Event()

    if threading.current_thread() is not threading.main_thread():
        yield stop_event
        return

    def handle(sig: int, frame: FrameType | None) -> None:
        logging.getLogger("chatrelay.signals").info(
            f"Received {signal.Signals(sig).name}, shutting down"
        )
        loop.call_soon_threadsafe(stop_event.set)

    original_handlers = {
        sig: signal.signal(sig, handle)
        for sig in SHUTDOWN_SIGNALS
    }

    try:
        yield stop_event
    finally:
        for sig, old in original_handlers.items():
            signal.signal(sig, old)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)-8s [%(name)s:%(funcName)s] : %(message)s',
    )
