"""Shared plumbing for the SSH-backed commands: target lookup and exit codes."""

import logging
import sys

from vers_cli.ssh import Client, ExitError
from vers_cli.vm import KeyFetchError, get_connect_target

logger = logging.getLogger(__name__)


async def resolve_client(identifier):
    """Resolve *identifier* (HEAD when empty) into an SSH client for that VM."""
    try:
        target = await get_connect_target(identifier)
    except (ValueError, OSError, KeyFetchError) as e:
        logger.error(f"Error: failed to get VM information: {e}")
        sys.exit(1)

    if target.used_head:
        logger.info(f"Using current HEAD VM: {target.vm_id}")
    return Client(target.host, target.key_path), target


def exit_code_for(error: ExitError) -> int:
    """Process exit code mirroring a remote ExitError (255 for signals, like ssh)."""
    if error.signal is not None or error.exit_status < 0:
        return 255
    return error.exit_status
