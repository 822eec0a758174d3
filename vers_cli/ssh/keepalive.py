"""Keep-alive monitor for SSH connections.

Mirrors ``ServerAliveInterval=10`` / ``ServerAliveCountMax=6``: a request every
10 seconds, and the connection is closed after 6 consecutive requests go
unanswered (about a minute of silence).
"""

import asyncio
import logging

logger = logging.getLogger(__name__)

KEEPALIVE_REQUEST = b"keepalive@openssh.com"
KEEPALIVE_INTERVAL = 10.0
KEEPALIVE_MAX_MISSED = 6


async def send_keepalive(conn):
    """Send ``keepalive@openssh.com`` with want-reply and wait for the reply.

    Any reply (success or failure) proves the peer is alive. asyncssh exposes
    global requests only through its internal helper.
    """
    if conn.is_closed():
        raise ConnectionError("connection closed")
    await conn._make_global_request(KEEPALIVE_REQUEST)


class KeepAliveMonitor:
    """Ping a connection periodically and close it once it stops answering.

    Args:
        send: coroutine function sending one keep-alive; raising means a miss.
        close: called once when *max_missed* consecutive keep-alives have failed.
        interval: seconds between keep-alives; one slower than this is a miss.
        max_missed: consecutive misses tolerated before closing.
    """

    def __init__(self, send, close, interval=KEEPALIVE_INTERVAL, max_missed=KEEPALIVE_MAX_MISSED):
        self.send = send
        self.close = close
        self.interval = interval
        self.max_missed = max_missed
        self.missed = 0

    async def run(self):
        """Loop until the connection is closed for silence or the task is cancelled.

        Keep-alives go out on a fixed period; waiting for a reply eats into the
        period rather than extending it, so a silent peer is closed about
        ``interval * max_missed`` seconds after the first unanswered one.
        Cancellation returns without closing: the connection's owner closes it.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            # a stalled loop realigns instead of firing requests back to back
            next_tick = max(next_tick, loop.time()) + self.interval
            try:
                await asyncio.wait_for(self.send(), timeout=max(0.0, next_tick - loop.time()))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.missed += 1
                logger.debug(f"Keep-alive missed ({self.missed}/{self.max_missed}): {e!r}")
                if self.missed >= self.max_missed:
                    logger.debug("Keep-alive threshold reached, closing connection")
                    self.close()
                    return
            else:
                self.missed = 0

    def start(self) -> asyncio.Task:
        """Run the monitor as a background task on the running loop."""
        return asyncio.get_running_loop().create_task(self.run())
