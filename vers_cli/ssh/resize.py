"""Local terminal size probing and resize notifications.

``SignalResizeWatcher`` listens for ``SIGWINCH`` where the platform has it;
``NullResizeWatcher`` never reports a change. ``default_resize_watcher``
picks the right one for the running platform.
"""

import asyncio
import logging
import os
import signal

logger = logging.getLogger(__name__)

DEFAULT_TERM_SIZE = (80, 24)


def terminal_fd(stream):
    """Return the file descriptor of *stream* if it is a terminal, else None."""
    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None
    return fd if os.isatty(fd) else None


def terminal_size(fd):
    """Return ``(columns, rows)`` for *fd*, falling back to 80x24."""
    if fd is None:
        return DEFAULT_TERM_SIZE
    try:
        size = os.get_terminal_size(fd)
    except OSError:
        return DEFAULT_TERM_SIZE
    return size.columns, size.lines


class NullResizeWatcher:
    """Resize watcher for platforms without a window-change signal."""

    async def watch(self, fd):
        return
        yield


class SignalResizeWatcher:
    """Yield the terminal size of *fd* after every ``SIGWINCH``."""

    def __init__(self, signum=None):
        self.signum = signum if signum is not None else signal.SIGWINCH

    async def watch(self, fd):
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()
        loop.add_signal_handler(self.signum, changed.set)
        try:
            while True:
                await changed.wait()
                changed.clear()
                try:
                    size = os.get_terminal_size(fd)
                except OSError as e:
                    logger.debug(f"Terminal size unavailable: {e}")
                    continue
                yield size.columns, size.lines
        finally:
            loop.remove_signal_handler(self.signum)


def default_resize_watcher():
    if hasattr(signal, "SIGWINCH"):
        return SignalResizeWatcher()
    return NullResizeWatcher()
