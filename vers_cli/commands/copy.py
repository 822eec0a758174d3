"""Copy command: SFTP transfers between the local machine and a VM."""

import asyncio
import logging
import os
import sys

from vers_cli.commands.common import resolve_client
from vers_cli.ssh import VersSSHError

logger = logging.getLogger(__name__)

UPLOAD = "upload"
DOWNLOAD = "download"


def detect_direction(source, destination):
    """Decide the transfer direction from the shape of the two paths.

    An absolute source with a relative destination is a download; a relative
    source with an absolute destination is an upload. Otherwise it is an
    upload when the source exists locally.
    """
    src_abs = source.startswith("/")
    dst_abs = destination.startswith("/")
    if src_abs and not dst_abs:
        return DOWNLOAD
    if dst_abs and not src_abs:
        return UPLOAD
    return UPLOAD if os.path.exists(os.path.expanduser(source)) else DOWNLOAD


def handle_copy(args):
    """Handle the copy command."""
    if len(args.paths) == 2:
        target, (source, destination) = None, args.paths
    elif len(args.paths) == 3:
        target, source, destination = args.paths
    else:
        logger.error("Error: expected [target] <source> <destination>")
        sys.exit(1)

    asyncio.run(_handle_copy(target, source, destination, args.recursive))


async def _handle_copy(target, source, destination, recursive):
    client, conn_target = await resolve_client(target)
    direction = detect_direction(source, destination)

    try:
        if direction == UPLOAD:
            local = os.path.expanduser(source)
            logger.info(f"Uploading {source} to VM {conn_target.vm_id} at {destination}")
            await client.upload(local, destination, recursive=recursive)
        else:
            local = os.path.expanduser(destination)
            logger.info(f"Downloading {source} from VM {conn_target.vm_id} to {destination}")
            await client.download(source, local, recursive=recursive)
    except VersSSHError as e:
        logger.error(f"Error: {direction} failed: {e}")
        sys.exit(1)

    logger.info("File copy completed successfully")


def register_copy_command(subparsers):
    """Register the copy subcommand."""
    parser = subparsers.add_parser(
        "copy",
        help="Copy files to or from a VM",
        description=(
            "Copy files between the local machine and a VM over SFTP. "
            "Examples: 'vers copy vm-123 ./file.txt /root/', "
            "'vers copy /root/out.log ./out.log' (uses HEAD)."
        ),
    )
    parser.add_argument(
        "paths",
        nargs="+",
        metavar="[target] source destination",
        help="optional VM id or alias, then source and destination paths",
    )
    parser.add_argument(
        "-r",
        "--recursive",
        action="store_true",
        help="Recursively copy directories",
    )
    parser.set_defaults(func=handle_copy)
