"""SFTP file transfer: single files and recursive directory trees.

Transfers are best-effort: the first error aborts the walk and files already
copied stay where they are. Permission bits are propagated when the
destination allows it; failures to set them are ignored.
"""

import logging
import os
import posixpath
import stat

import asyncssh

from vers_cli.ssh.errors import TransferError

logger = logging.getLogger(__name__)

COPY_BUFSIZE = 64 * 1024
DIRECTORY_ERROR = "source is a directory, use recursive mode"


def remote_join(base, *parts):
    """Join remote path components with ``/`` regardless of the local OS."""
    parts = [p for p in parts if p and p != "."]
    return posixpath.join(base, *parts) if parts else base


def check_local_source(local_path, recursive):
    """Stat an upload source. Returns True for directories, raises for unusable sources."""
    try:
        st = os.stat(local_path)
    except OSError as e:
        raise TransferError(f"stat local path: {e}") from e
    if stat.S_ISDIR(st.st_mode):
        if not recursive:
            raise TransferError(DIRECTORY_ERROR)
        return True
    return False


# ── Upload ────────────────────────────────────────────────────────


async def upload_file(sftp, local_path, remote_path):
    """Copy one local file to *remote_path*, replacing any existing remote file."""
    try:
        local_file = open(local_path, "rb")
    except OSError as e:
        raise TransferError(f"open local file: {e}") from e

    with local_file:
        try:
            mode = stat.S_IMODE(os.fstat(local_file.fileno()).st_mode)
        except OSError as e:
            raise TransferError(f"stat local file: {e}") from e

        try:
            remote_file = await sftp.open(remote_path, "wb")
        except (asyncssh.SFTPError, OSError) as e:
            raise TransferError(f"create remote file {remote_path}: {e}") from e

        async with remote_file:
            try:
                while True:
                    chunk = local_file.read(COPY_BUFSIZE)
                    if not chunk:
                        break
                    await remote_file.write(chunk)
            except (asyncssh.SFTPError, OSError) as e:
                raise TransferError(f"copy file {local_path}: {e}") from e

    try:
        await sftp.chmod(remote_path, mode)
    except (asyncssh.SFTPError, OSError) as e:
        logger.debug(f"chmod {remote_path} {oct(mode)} ignored: {e}")


async def upload_dir(sftp, local_dir, remote_dir):
    """Recreate *local_dir* under *remote_dir*, directories first.

    Symbolic links to directories are not followed and fail the upload.
    """
    for root, dirs, files in os.walk(local_dir, onerror=_raise_walk_error):
        for name in dirs:
            path = os.path.join(root, name)
            if os.path.islink(path):
                raise TransferError(f"copy file {path}: symlink to a directory is not followed")
        dirs.sort()
        rel = os.path.relpath(root, local_dir)
        remote_root = remote_join(remote_dir, *_split_local(rel))
        try:
            await sftp.makedirs(remote_root, exist_ok=True)
        except (asyncssh.SFTPError, OSError) as e:
            raise TransferError(f"mkdir {remote_root}: {e}") from e

        for name in sorted(files):
            await upload_file(sftp, os.path.join(root, name), remote_join(remote_root, name))


def _split_local(rel):
    if rel == os.curdir:
        return []
    return rel.split(os.sep)


def _raise_walk_error(err):
    raise TransferError(f"walk {err.filename}: {err}") from err


# ── Download ──────────────────────────────────────────────────────


async def remote_is_dir(sftp, remote_path):
    """Stat a download source and report whether it is a directory."""
    try:
        attrs = await sftp.stat(remote_path)
    except (asyncssh.SFTPError, OSError) as e:
        raise TransferError(f"stat remote path: {e}") from e
    return attrs.permissions is not None and stat.S_ISDIR(attrs.permissions)


async def download_file(sftp, remote_path, local_path):
    """Copy one remote file to *local_path*, replacing any existing local file."""
    try:
        remote_file = await sftp.open(remote_path, "rb")
    except (asyncssh.SFTPError, OSError) as e:
        raise TransferError(f"open remote file {remote_path}: {e}") from e

    async with remote_file:
        try:
            attrs = await remote_file.stat()
        except (asyncssh.SFTPError, OSError) as e:
            raise TransferError(f"stat remote file {remote_path}: {e}") from e

        try:
            local_file = open(local_path, "wb")
        except OSError as e:
            raise TransferError(f"create local file: {e}") from e

        with local_file:
            try:
                while True:
                    chunk = await remote_file.read(COPY_BUFSIZE)
                    if not chunk:
                        break
                    local_file.write(chunk)
            except (asyncssh.SFTPError, OSError) as e:
                raise TransferError(f"copy file {remote_path}: {e}") from e

    if attrs.permissions is not None:
        _chmod_local(local_path, stat.S_IMODE(attrs.permissions))


async def walk_remote(sftp, remote_dir, rel_dir=""):
    """Yield ``(path, rel_path, attrs)`` for every entry below *remote_dir*, parents before children.

    *rel_path* is relative to the directory the walk started from, ``/``-separated.
    """
    try:
        entries = await sftp.readdir(remote_dir)
    except (asyncssh.SFTPError, OSError) as e:
        raise TransferError(f"read remote dir {remote_dir}: {e}") from e

    for entry in sorted(entries, key=lambda e: e.filename):
        if entry.filename in (".", ".."):
            continue
        path = remote_join(remote_dir, entry.filename)
        rel_path = remote_join(rel_dir, entry.filename) if rel_dir else entry.filename
        yield path, rel_path, entry.attrs
        if entry.attrs.permissions is not None and stat.S_ISDIR(entry.attrs.permissions):
            async for item in walk_remote(sftp, path, rel_path):
                yield item


async def download_dir(sftp, remote_dir, local_dir):
    """Recreate *remote_dir* under *local_dir*."""
    try:
        os.makedirs(local_dir, exist_ok=True)
    except OSError as e:
        raise TransferError(f"mkdir {local_dir}: {e}") from e

    async for remote_path, rel_path, attrs in walk_remote(sftp, remote_dir):
        local_path = os.path.join(local_dir, *rel_path.split("/"))
        if stat.S_ISDIR(attrs.permissions or 0):
            try:
                os.makedirs(local_path, mode=stat.S_IMODE(attrs.permissions), exist_ok=True)
            except OSError as e:
                raise TransferError(f"mkdir {local_path}: {e}") from e
            continue
        await download_file(sftp, remote_path, local_path)


def _chmod_local(local_path, mode):
    try:
        os.chmod(local_path, mode)
    except OSError as e:
        logger.debug(f"chmod {local_path} {oct(mode)} ignored: {e}")
