"""Shared pytest fixtures: an in-process SSH server, client keys and a TLS edge."""

import asyncio
import datetime
import os
import socket
import ssl
import subprocess
import sys

import asyncssh
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from vers_cli.ssh import Client, TCPDialer, TLSDialer

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))
TEST_VM = "testvm"


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def run_cli(project_root):
    """Return a callable that invokes the vers CLI as a subprocess."""

    def _run(*args, env=None):
        result = subprocess.run(
            [sys.executable, "-m", "vers_cli.vers_cli", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Fake VM: commands understood by the test server ────────────────


async def _run_command(process):
    """Tiny command interpreter standing in for a VM shell.

    ``echo X``, ``err X``, ``exit N``, ``sleep S``, ``blob N``, ``cat``,
    ``kill``; anything else exits 127 like a shell with an unknown command.
    """
    argv = process.command.split()
    name, rest = argv[0], argv[1:]

    if name == "echo":
        process.stdout.write((" ".join(rest) + "\n").encode())
        process.exit(0)
    elif name == "err":
        process.stderr.write((" ".join(rest) + "\n").encode())
        process.exit(0)
    elif name == "exit":
        process.exit(int(rest[0]))
    elif name == "sleep":
        await asyncio.sleep(float(rest[0]))
        process.exit(0)
    elif name == "blob":
        size = int(rest[0])
        process.stdout.write(bytes(i % 251 for i in range(size)))
        await process.stdout.drain()
        process.exit(0)
    elif name == "cat":
        data = await process.stdin.read()
        process.stdout.write(data)
        process.exit(0)
    elif name == "kill":
        process.exit_with_signal("KILL")
    else:
        process.stderr.write(f"sh: {name}: command not found\n".encode())
        process.exit(127)


async def _run_shell(process):
    """Login shell: report the PTY, then echo stdin back until EOF."""
    width, height, _, _ = process.get_terminal_size()
    banner = f"{process.get_terminal_type()} {width}x{height}\n"
    process.stdout.write(banner.encode())
    data = await process.stdin.read()
    process.stdout.write(data)
    process.exit(0)


async def _handle_process(process):
    if process.command is None:
        await _run_shell(process)
    else:
        await _run_command(process)


# ── SSH server and client fixtures ─────────────────────────────────


@pytest.fixture
def client_key():
    return asyncssh.generate_private_key("ssh-ed25519")


@pytest.fixture
def client_key_path(tmp_path, client_key):
    """The authorized client key, written as an OpenSSH private key file."""
    path = tmp_path / "vm.key"
    client_key.write_private_key(str(path))
    return str(path)


@pytest.fixture
async def ssh_server(client_key):
    """asyncssh server on 127.0.0.1 with exec, shell and SFTP (real filesystem)."""
    host_key = asyncssh.generate_private_key("ssh-ed25519")
    authorized = asyncssh.import_authorized_keys(client_key.export_public_key().decode())
    server = await asyncssh.listen(
        "127.0.0.1",
        0,
        server_host_keys=[host_key],
        authorized_client_keys=authorized,
        process_factory=_handle_process,
        sftp_factory=True,
        encoding=None,
        line_editor=False,
    )
    yield server
    server.close()
    await server.wait_closed()


@pytest.fixture
def ssh_port(ssh_server):
    return ssh_server.sockets[0].getsockname()[1]


@pytest.fixture
def client(ssh_port, client_key_path):
    """Client for the fake VM, dialing the test server over plain TCP."""
    return Client(TEST_VM, client_key_path, dialer=TCPDialer("127.0.0.1", ssh_port))


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it."""
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ── TLS edge: terminates TLS and forwards to the SSH server ───────


def _self_signed_cert(tmp_path):
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "*.vm.vers.sh")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    cert_path = tmp_path / "edge.crt"
    key_path = tmp_path / "edge.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return str(cert_path), str(key_path)


async def _pipe(reader, writer):
    try:
        while True:
            data = await reader.read(65536)
            if not data:
                break
            writer.write(data)
            await writer.drain()
    except (ConnectionError, OSError):
        pass
    finally:
        writer.close()


class TLSEdge:
    """Records the SNI names it was dialed with."""

    def __init__(self):
        self.server_names = []
        self.port = None


@pytest.fixture
async def tls_edge(tmp_path, ssh_port):
    """TLS listener on 127.0.0.1 that forwards the decrypted stream to the SSH server."""
    edge = TLSEdge()
    cert_path, key_path = _self_signed_cert(tmp_path)
    ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    ctx.load_cert_chain(cert_path, key_path)
    ctx.sni_callback = lambda ssl_obj, server_name, _ctx: edge.server_names.append(server_name)

    async def handle(reader, writer):
        up_reader, up_writer = await asyncio.open_connection("127.0.0.1", ssh_port)
        await asyncio.gather(_pipe(reader, up_writer), _pipe(up_reader, writer))

    server = await asyncio.start_server(handle, "127.0.0.1", 0, ssl=ctx)
    edge.port = server.sockets[0].getsockname()[1]
    yield edge
    server.close()


@pytest.fixture
def tls_client(tls_edge, client_key_path):
    """Client for the fake VM going through the TLS edge with SNI."""
    return Client(TEST_VM, client_key_path, dialer=TLSDialer(port=tls_edge.port, address="127.0.0.1"))


# ── Stalling proxy: a TCP relay that can go silent ─────────────────


class StallingProxy:
    """Relays to the SSH server until ``stalled`` is set, then drops every byte."""

    def __init__(self):
        self.stalled = False
        self.port = None

    async def relay(self, reader, writer):
        try:
            while True:
                data = await reader.read(65536)
                if not data:
                    break
                if self.stalled:
                    continue
                writer.write(data)
                await writer.drain()
        except (ConnectionError, OSError):
            pass
        finally:
            writer.close()


@pytest.fixture
async def stalling_proxy(ssh_port):
    """Plain TCP relay on 127.0.0.1 in front of the SSH server."""
    proxy = StallingProxy()

    async def handle(reader, writer):
        up_reader, up_writer = await asyncio.open_connection("127.0.0.1", ssh_port)
        await asyncio.gather(proxy.relay(reader, up_writer), proxy.relay(up_reader, writer))

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    proxy.port = server.sockets[0].getsockname()[1]
    yield proxy
    server.close()
