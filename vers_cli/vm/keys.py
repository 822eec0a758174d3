"""Per-VM SSH private keys, fetched from the Vers API and cached in the temp dir."""

import logging
import os
import tempfile

import httpx

from vers_cli.vm.config import get_api_key, get_vers_url

logger = logging.getLogger(__name__)

KEYS_DIR_NAME = "vers-ssh-keys"


class KeyFetchError(Exception):
    """The API did not hand out an SSH key for the VM."""


def ssh_key_path(vm_id) -> str:
    return os.path.join(tempfile.gettempdir(), KEYS_DIR_NAME, f"{vm_id}.key")


async def fetch_ssh_key(vm_id, transport=None) -> str:
    """GET ``/api/v1/vm/{vm_id}/ssh_key`` and return the private key text.

    *transport* is passed to ``httpx.AsyncClient`` (tests use a MockTransport).
    """
    url = f"{get_vers_url()}/api/v1/vm/{vm_id}/ssh_key"
    headers = {"Authorization": f"Bearer {get_api_key()}", "Accept": "application/json"}

    try:
        async with httpx.AsyncClient(transport=transport) as client:
            resp = await client.get(url, headers=headers, timeout=30)
        resp.raise_for_status()
        data = resp.json()
    except httpx.HTTPStatusError as e:
        raise KeyFetchError(f"API returned status {e.response.status_code}: {e.response.text}") from e
    except httpx.HTTPError as e:
        raise KeyFetchError(f"failed to make request: {e}") from e
    except ValueError as e:
        raise KeyFetchError(f"failed to parse response: {e}") from e

    key = data.get("ssh_private_key") if isinstance(data, dict) else None
    if not key:
        raise KeyFetchError("response has no ssh_private_key")
    return key


async def get_or_fetch_ssh_key(vm_id, transport=None) -> str:
    """Return the cached key path for *vm_id*, fetching the key on first use."""
    key_path = ssh_key_path(vm_id)
    if os.path.exists(key_path):
        return key_path

    logger.info("Fetching SSH key from API...")
    key = await fetch_ssh_key(vm_id, transport=transport)

    os.makedirs(os.path.dirname(key_path), mode=0o755, exist_ok=True)
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(key)
    logger.debug(f"SSH key cached at {key_path}")
    return key_path
