"""Connect command: interactive shell on a VM over SSH-over-TLS."""

import asyncio
import contextlib
import logging
import sys

from vers_cli.commands.common import exit_code_for, resolve_client
from vers_cli.ssh import ExitError, VersSSHError

logger = logging.getLogger(__name__)


@contextlib.contextmanager
def raw_terminal(stream):
    """Put *stream* in raw mode when it is a terminal; always restore it."""
    try:
        import termios
        import tty
    except ImportError:
        # no termios (Windows): the console is left as is
        yield
        return

    try:
        fd = stream.fileno()
    except (AttributeError, OSError, ValueError):
        yield
        return
    if not stream.isatty():
        yield
        return

    old_settings = termios.tcgetattr(fd)
    try:
        tty.setraw(fd)
        yield
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)


def handle_connect(args):
    """Handle the connect command."""
    try:
        asyncio.run(_handle_connect(args))
    except KeyboardInterrupt:
        # interrupting an interactive session is a normal way out
        pass


async def _handle_connect(args):
    client, target = await resolve_client(args.target)
    logger.info(f"Connecting to VM {target.vm_id} ({client.hostname}:443)...")

    try:
        with raw_terminal(sys.stdin):
            await client.interactive(sys.stdin, sys.stdout.buffer, sys.stderr.buffer)
    except ExitError as e:
        # the shell's own exit status, e.g. after a failing last command
        sys.exit(exit_code_for(e))
    except VersSSHError as e:
        logger.error(f"Error: SSH session failed: {e}")
        sys.exit(1)


def register_connect_command(subparsers):
    """Register the connect subcommand."""
    parser = subparsers.add_parser(
        "connect",
        help="Open an interactive shell on a VM",
    )
    parser.add_argument(
        "target",
        nargs="?",
        default=None,
        help="VM id or alias (default: current HEAD)",
    )
    parser.set_defaults(func=handle_connect)
