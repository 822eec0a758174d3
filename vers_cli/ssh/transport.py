"""TLS transport for SSH: per-VM hostnames reached through the platform edge on port 443.

The edge routes on SNI, so every VM is addressed as ``{vm-id}.vm.vers.sh``.
Certificates are not verified; authentication rests on the SSH private key.
"""

import asyncio
import logging
import ssl

from vers_cli.ssh.errors import TransportError

logger = logging.getLogger(__name__)

VM_DOMAIN = "vm.vers.sh"
VM_PORT = 443


def vm_hostname(host: str) -> str:
    """Return the TLS/SSH hostname for a VM id (``abc123`` -> ``abc123.vm.vers.sh``)."""
    return f"{host}.{VM_DOMAIN}"


def make_tls_context() -> ssl.SSLContext:
    """Client TLS context: TLS 1.2+, no certificate or hostname verification."""
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.minimum_version = ssl.TLSVersion.TLSv1_2
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


class TLSDialer:
    """Open TLS byte streams to ``hostname:port`` with SNI set to the hostname.

    Used as an asyncssh tunnel: asyncssh calls ``create_connection`` with its
    protocol factory and the SSH session runs on top of the TLS transport.

    *address* overrides the TCP destination while keeping the SNI name, which
    is how the client is pointed at a local edge in tests.
    """

    def __init__(self, port: int = VM_PORT, address: str | None = None):
        self.port = port
        self.address = address
        self.ssl_context = make_tls_context()

    async def create_connection(self, protocol_factory, host, port=None):
        loop = asyncio.get_running_loop()
        target = self.address or host
        logger.debug(f"TLS dial {target}:{self.port} (sni={host})")
        try:
            return await loop.create_connection(
                protocol_factory,
                target,
                self.port,
                ssl=self.ssl_context,
                server_hostname=host,
            )
        except OSError as e:
            raise TransportError(f"TLS dial: {e}") from e

    def __str__(self):
        return f"tls:{self.port}"


class TCPDialer:
    """Plain TCP dialer to a fixed address, for SSH servers that terminate TCP directly."""

    def __init__(self, address: str, port: int):
        self.address = address
        self.port = port

    async def create_connection(self, protocol_factory, host, port=None):
        loop = asyncio.get_running_loop()
        logger.debug(f"TCP dial {self.address}:{self.port} (for {host})")
        try:
            return await loop.create_connection(protocol_factory, self.address, self.port)
        except OSError as e:
            raise TransportError(f"TCP dial: {e}") from e

    def __str__(self):
        return f"tcp:{self.address}:{self.port}"
