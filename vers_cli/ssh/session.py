"""Streaming session: a started command with raw stdin/stdout/stderr streams.

For callers that pump bytes themselves, e.g. to forward remote output as log
records instead of terminal bytes::

    session = await client.start_session()
    async with session:
        await session.start("make test")
        async for line in session.stdout:
            logger.info(line.decode().rstrip())
        await session.wait()
"""

import asyncio

from vers_cli.ssh.connection import check_exit


class Session:
    """One connection running one command. Owns both; ``close()`` tears both down."""

    def __init__(self, connection):
        self._connection = connection
        self._process = None
        self._command = None
        self._closed = False
        self._lock = asyncio.Lock()

    async def start(self, command):
        """Start *command* without waiting for it to finish.

        If the command cannot be started the whole session is closed before
        the error propagates.
        """
        if self._process is not None:
            raise RuntimeError("session already started")
        if self._closed:
            raise RuntimeError("session is closed")
        try:
            self._process = await self._connection.create_process(command)
        except BaseException:
            await self.close()
            raise
        self._command = command

    async def wait(self):
        """Wait for the command to finish; raises ExitError on a non-zero status."""
        result = await self._started().wait()
        check_exit(result, self._command)

    @property
    def stdin(self):
        return self._started().stdin

    @property
    def stdout(self):
        return self._started().stdout

    @property
    def stderr(self):
        return self._started().stderr

    @property
    def closed(self) -> bool:
        return self._closed

    def _started(self):
        if self._process is None:
            raise RuntimeError("session not started")
        return self._process

    async def close(self):
        """Close the command channel and the connection. Safe to call more than once."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._process is not None:
                self._process.close()
            await self._connection.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
