"""Native SSH client for Vers VMs, tunnelled through TLS on port 443.

Each operation dials its own connection and closes it before returning,
including on errors and cancellation. Cancel the calling task (or wrap the
call in ``asyncio.wait_for``) to abort an operation; the remote process is
not guaranteed to be killed.
"""

import asyncio
import logging
import os
import stat

import asyncssh

from vers_cli.ssh.connection import Connection, check_exit
from vers_cli.ssh.errors import (
    HandshakeError,
    SSHKeyParseError,
    SSHKeyReadError,
    TransferError,
    TransportError,
)
from vers_cli.ssh.keepalive import KEEPALIVE_INTERVAL, KEEPALIVE_MAX_MISSED
from vers_cli.ssh.resize import default_resize_watcher, terminal_fd, terminal_size
from vers_cli.ssh.session import Session
from vers_cli.ssh.sftp import (
    DIRECTORY_ERROR,
    check_local_source,
    download_dir,
    download_file,
    remote_is_dir,
    upload_dir,
    upload_file,
)
from vers_cli.ssh.transport import VM_PORT, TLSDialer, vm_hostname

logger = logging.getLogger(__name__)

SSH_USER = "root"
HANDSHAKE_TIMEOUT = 30
PTY_TERM = "xterm-256color"

# RFC 4254 section 8 terminal mode opcodes
_ECHO = 53
_TTY_OP_ISPEED = 128
_TTY_OP_OSPEED = 129
PTY_MODES = {_ECHO: 1, _TTY_OP_ISPEED: 14400, _TTY_OP_OSPEED: 14400}

_IO_CHUNK = 32 * 1024


def load_private_key(key_path):
    """Read and parse an unencrypted OpenSSH/PEM private key."""
    try:
        with open(key_path, "rb") as f:
            key_data = f.read()
    except OSError as e:
        raise SSHKeyReadError(f"read SSH key: {e}") from e
    try:
        return asyncssh.import_private_key(key_data)
    except asyncssh.KeyImportError as e:
        raise SSHKeyParseError(f"parse SSH key: {e}") from e


class Client:
    """SSH access to one VM.

    Args:
        host: VM id; the remote endpoint is ``{host}.vm.vers.sh:443``.
        key_path: path to the VM's private key.
        dialer: transport used to reach the hostname (default: TLS with SNI).
        keepalive_interval, keepalive_max_missed: keep-alive schedule for
            every connection this client opens.
    """

    def __init__(
        self,
        host,
        key_path,
        dialer=None,
        keepalive_interval=KEEPALIVE_INTERVAL,
        keepalive_max_missed=KEEPALIVE_MAX_MISSED,
    ):
        self._host = host
        self._key_path = key_path
        self._dialer = dialer or TLSDialer()
        self._keepalive_interval = keepalive_interval
        self._keepalive_max_missed = keepalive_max_missed

    @property
    def host(self):
        return self._host

    @property
    def key_path(self):
        return self._key_path

    @property
    def hostname(self):
        return vm_hostname(self._host)

    async def connect(self) -> Connection:
        """Dial, run the SSH handshake as root and start the keep-alive monitor.

        The caller owns the returned connection and must close it.
        """
        hostname = self.hostname
        signer = load_private_key(self._key_path)

        logger.debug(f"Connecting to {SSH_USER}@{hostname} via {self._dialer}")
        try:
            conn = await asyncssh.connect(
                hostname,
                VM_PORT,
                tunnel=self._dialer,
                username=SSH_USER,
                client_keys=[signer],
                preferred_auth="publickey",
                known_hosts=None,
                agent_path=None,
                config=None,
                login_timeout=HANDSHAKE_TIMEOUT,
            )
        except TransportError:
            raise
        except (asyncssh.Error, OSError) as e:
            raise HandshakeError(f"SSH handshake: {e}") from e

        logger.debug(f"Connected to {hostname}")
        return Connection(conn, self._keepalive_interval, self._keepalive_max_missed)

    # ── Command execution ─────────────────────────────────────────

    async def execute(self, command, stdout=None, stderr=None):
        """Run *command* to completion, streaming output into binary sinks.

        The command string is sent as-is; quoting is the caller's job.
        Raises ExitError when the command exits non-zero.
        """
        conn = await self.connect()
        try:
            process = await conn.create_process(command, stdin=asyncssh.DEVNULL)
            try:
                await _pump_outputs(process, stdout, stderr)
                result = await process.wait()
            finally:
                process.close()
        finally:
            await conn.close()
        check_exit(result, command)

    async def interactive(self, stdin=None, stdout=None, stderr=None, resize_watcher=None):
        """Run an interactive login shell on a remote PTY until it exits.

        When *stdin* is a terminal its size is used for the PTY and local
        resizes are forwarded; otherwise the PTY is 80x24.
        """
        fd = terminal_fd(stdin) if stdin is not None else None
        width, height = terminal_size(fd)

        conn = await self.connect()
        try:
            process = await conn.create_process(
                term_type=PTY_TERM,
                term_size=(width, height),
                term_modes=PTY_MODES,
            )
            background = [asyncio.create_task(_pump_input(stdin, process.stdin))]
            if fd is not None:
                watcher = resize_watcher or default_resize_watcher()
                background.append(asyncio.create_task(forward_resizes(watcher, fd, process)))
            try:
                await _pump_outputs(process, stdout, stderr)
                result = await process.wait()
            finally:
                for task in background:
                    task.cancel()
                await asyncio.gather(*background, return_exceptions=True)
                process.close()
        finally:
            await conn.close()
        check_exit(result)

    async def start_session(self, command=None) -> Session:
        """Connect and return a Session; starts *command* right away if given."""
        session = Session(await self.connect())
        if command is not None:
            await session.start(command)
        return session

    # ── File transfer ─────────────────────────────────────────────

    async def upload(self, local_path, remote_path, recursive=False):
        """Copy a local file, or a directory tree when *recursive*, to the VM."""
        is_dir = check_local_source(local_path, recursive)
        conn = await self.connect()
        try:
            sftp = await conn.open_sftp()
            try:
                if is_dir:
                    await upload_dir(sftp, local_path, remote_path)
                else:
                    await upload_file(sftp, local_path, remote_path)
            finally:
                sftp.exit()
                await sftp.wait_closed()
        finally:
            await conn.close()

    async def download(self, remote_path, local_path, recursive=False):
        """Copy a remote file, or a directory tree when *recursive*, from the VM."""
        conn = await self.connect()
        try:
            sftp = await conn.open_sftp()
            try:
                if await remote_is_dir(sftp, remote_path):
                    if not recursive:
                        raise TransferError(DIRECTORY_ERROR)
                    await download_dir(sftp, remote_path, local_path)
                else:
                    await download_file(sftp, remote_path, local_path)
            finally:
                sftp.exit()
                await sftp.wait_closed()
        finally:
            await conn.close()


# ── Stream plumbing ───────────────────────────────────────────────


async def _pump_outputs(process, stdout, stderr):
    """Drain stdout and stderr together; a failing sink stops both pumps."""
    pumps = [
        asyncio.create_task(_pump_output(process.stdout, stdout)),
        asyncio.create_task(_pump_output(process.stderr, stderr)),
    ]
    try:
        done, _ = await asyncio.wait(pumps, return_when=asyncio.FIRST_EXCEPTION)
        for task in done:
            task.result()
    finally:
        for task in pumps:
            task.cancel()
        await asyncio.gather(*pumps, return_exceptions=True)


async def _pump_output(reader, sink):
    """Copy a remote stream into *sink* until EOF. A None sink discards."""
    while True:
        chunk = await reader.read(_IO_CHUNK)
        if not chunk:
            return
        if sink is None:
            continue
        sink.write(chunk)
        flush = getattr(sink, "flush", None)
        if flush is not None:
            flush()


async def _pump_input(source, writer):
    """Copy *source* into the remote stdin, then send EOF.

    Terminals and pipes are read when the event loop reports them readable,
    so the descriptor stays in blocking mode for the rest of the process.
    """
    loop = asyncio.get_running_loop()
    fd = _fileno(source) if source is not None else None
    try:
        while source is not None:
            chunk = await _read_chunk(loop, source, fd)
            if not chunk:
                break
            writer.write(chunk)
            await writer.drain()
        writer.write_eof()
    except BrokenPipeError:
        # remote side closed stdin, the session is ending
        logger.debug("Remote stdin closed")


async def _read_chunk(loop, source, fd):
    if fd is None:
        return source.read(_IO_CHUNK)
    if stat.S_ISREG(os.fstat(fd).st_mode):
        return os.read(fd, _IO_CHUNK)

    ready = loop.create_future()
    try:
        loop.add_reader(fd, _mark_ready, ready)
    except NotImplementedError:
        # event loops without reader callbacks (Windows proactor)
        return await loop.run_in_executor(None, os.read, fd, _IO_CHUNK)
    try:
        await ready
    finally:
        loop.remove_reader(fd)
    return os.read(fd, _IO_CHUNK)


def _mark_ready(future):
    if not future.done():
        future.set_result(None)


def _fileno(stream):
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


async def forward_resizes(watcher, fd, process):
    """Send every local terminal size reported by *watcher* to the remote PTY."""
    async for width, height in watcher.watch(fd):
        logger.debug(f"Terminal resized to {width}x{height}")
        try:
            process.change_terminal_size(width, height)
        except (asyncssh.Error, OSError) as e:
            logger.debug(f"Window change not delivered: {e}")
            return
