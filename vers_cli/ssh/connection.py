"""A live SSH connection owned by exactly one operation."""

import logging

import asyncssh

from vers_cli.ssh.errors import ExitError, SessionError
from vers_cli.ssh.keepalive import (
    KEEPALIVE_INTERVAL,
    KEEPALIVE_MAX_MISSED,
    KeepAliveMonitor,
    send_keepalive,
)

logger = logging.getLogger(__name__)


class Connection:
    """An authenticated asyncssh connection plus its keep-alive monitor.

    Closing stops the monitor first, so the monitor never races the owner's
    own close. The monitor may still close the connection on its own when
    the peer goes silent; in-flight operations then see the connection drop.
    """

    def __init__(self, conn, keepalive_interval=KEEPALIVE_INTERVAL, keepalive_max_missed=KEEPALIVE_MAX_MISSED):
        self.conn = conn
        self.monitor = KeepAliveMonitor(
            lambda: send_keepalive(conn),
            conn.close,
            interval=keepalive_interval,
            max_missed=keepalive_max_missed,
        )
        self._monitor_task = self.monitor.start()

    def is_closed(self) -> bool:
        return self.conn.is_closed()

    async def create_process(self, command=None, **kwargs):
        """Open a session channel and start *command* (a shell when None), bytes in and out."""
        try:
            return await self.conn.create_process(command, encoding=None, **kwargs)
        except (asyncssh.Error, OSError) as e:
            raise SessionError(f"new session: {e}") from e

    async def open_sftp(self):
        try:
            return await self.conn.start_sftp_client()
        except (asyncssh.Error, OSError) as e:
            raise SessionError(f"SFTP client: {e}") from e

    async def close(self):
        logger.debug(f"Closing SSH connection to {self.conn.get_extra_info('host')}")
        self._monitor_task.cancel()
        self.conn.close()
        await self.conn.wait_closed()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()


def check_exit(result, command=None):
    """Raise ExitError for a completed process that did not exit cleanly."""
    if result.exit_signal:
        raise ExitError(-1, signal=result.exit_signal[0], command=command)
    if result.exit_status is None:
        raise SessionError("remote command exited without exit status or exit signal")
    if result.exit_status != 0:
        raise ExitError(result.exit_status, command=command)
