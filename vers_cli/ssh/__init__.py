"""Native SSH-over-TLS access to Vers VMs: exec, interactive shells, streaming sessions, SFTP."""

from vers_cli.ssh.client import HANDSHAKE_TIMEOUT, PTY_TERM, SSH_USER, Client, load_private_key
from vers_cli.ssh.connection import Connection
from vers_cli.ssh.errors import (
    ExitError,
    HandshakeError,
    SessionError,
    SSHKeyParseError,
    SSHKeyReadError,
    TransferError,
    TransportError,
    VersSSHError,
)
from vers_cli.ssh.keepalive import KeepAliveMonitor
from vers_cli.ssh.resize import NullResizeWatcher, SignalResizeWatcher, default_resize_watcher
from vers_cli.ssh.session import Session
from vers_cli.ssh.transport import VM_DOMAIN, VM_PORT, TCPDialer, TLSDialer, vm_hostname

__all__ = [
    "Client",
    "Connection",
    "Session",
    "KeepAliveMonitor",
    "TLSDialer",
    "TCPDialer",
    "NullResizeWatcher",
    "SignalResizeWatcher",
    "default_resize_watcher",
    "load_private_key",
    "vm_hostname",
    "VM_DOMAIN",
    "VM_PORT",
    "SSH_USER",
    "PTY_TERM",
    "HANDSHAKE_TIMEOUT",
    "VersSSHError",
    "SSHKeyReadError",
    "SSHKeyParseError",
    "TransportError",
    "HandshakeError",
    "SessionError",
    "TransferError",
    "ExitError",
]
