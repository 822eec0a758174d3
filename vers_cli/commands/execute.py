"""Execute command: run one command on a VM and mirror its exit status."""

import argparse
import asyncio
import logging
import os
import sys

from vers_cli.commands.common import exit_code_for, resolve_client
from vers_cli.ssh import ExitError, VersSSHError
from vers_cli.vm.resolve import load_aliases

logger = logging.getLogger(__name__)


def split_target_and_command(tokens, aliases=None):
    """Split ``[target] [--] command...`` into ``(target, command_tokens)``.

    With an explicit ``--`` everything before it is the target (at most one
    token). Otherwise the first token is a target only when it looks like a
    VM id (``vm-`` prefix) or is a known alias, and more tokens follow.
    """
    if "--" in tokens:
        idx = tokens.index("--")
        head, command = tokens[:idx], tokens[idx + 1:]
        if len(head) > 1:
            raise ValueError(f"expected at most one VM before '--', got {' '.join(head)}")
        return (head[0] if head else None), command

    if aliases is None:
        aliases = load_aliases()
    if len(tokens) >= 2 and (tokens[0].startswith("vm-") or tokens[0] in aliases):
        return tokens[0], tokens[1:]
    return None, list(tokens)


def handle_execute(args):
    """Handle the execute command."""
    try:
        target, command = split_target_and_command(args.args)
    except ValueError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    if not command:
        logger.error("Error: no command given")
        sys.exit(1)

    asyncio.run(_handle_execute(target, " ".join(command)))


async def _handle_execute(target, command):
    client, _ = await resolve_client(target)
    logger.debug(f"Running on {client.hostname}: {command}")

    try:
        await client.execute(command, stdout=sys.stdout.buffer, stderr=sys.stderr.buffer)
    except ExitError as e:
        logger.debug(f"{e}")
        sys.exit(exit_code_for(e))
    except BrokenPipeError:
        # the reader of our output went away (``| head``), exit quietly like ssh
        _silence_stdout()
        sys.exit(1)
    except VersSSHError as e:
        logger.error(f"Error: failed to run SSH command: {e}")
        sys.exit(1)


def _silence_stdout():
    """Point stdout at /dev/null so the interpreter's final flush cannot fail again."""
    try:
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        os.close(devnull)
    except (OSError, ValueError, AttributeError) as e:
        logger.debug(f"stdout left as is: {e}")


def register_execute_command(subparsers):
    """Register the execute subcommand."""
    parser = subparsers.add_parser(
        "execute",
        help="Run a command on a VM",
        description="Run a command on a VM. Without a VM id or alias the current HEAD is used.",
    )
    parser.add_argument(
        "args",
        nargs=argparse.REMAINDER,
        metavar="[target] [--] command",
        help="optional VM id or alias, then the command and its arguments",
    )
    parser.set_defaults(func=handle_execute)
