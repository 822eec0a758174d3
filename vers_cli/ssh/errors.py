"""Exceptions raised by the SSH-over-TLS client."""


class VersSSHError(Exception):
    """Base class for all SSH client errors."""


class SSHKeyReadError(VersSSHError):
    """The private key file is missing or unreadable."""


class SSHKeyParseError(VersSSHError):
    """The private key is malformed or passphrase-protected."""


class TransportError(VersSSHError):
    """The TLS connection to the VM edge could not be established."""


class HandshakeError(VersSSHError):
    """The SSH handshake or authentication over TLS failed."""


class SessionError(VersSSHError):
    """A session channel (exec, shell or SFTP) could not be opened."""


class TransferError(VersSSHError):
    """An SFTP upload or download failed. Files already copied are left in place."""


class ExitError(VersSSHError):
    """A remote command finished with a non-zero status or was killed by a signal.

    This is an expected outcome of running a command, not a transport failure.
    ``exit_status`` is -1 when the remote side reported a signal instead of a status.
    """

    def __init__(self, exit_status, signal=None, command=None):
        self.exit_status = exit_status
        self.signal = signal
        self.command = command
        if signal:
            msg = f"remote command terminated by signal {signal}"
        else:
            msg = f"remote command exited with status {exit_status}"
        super().__init__(msg)
