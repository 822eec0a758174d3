"""Turn a user-supplied VM identifier (or HEAD) into a connect target."""

import json
import logging
from pathlib import Path

from vers_cli.vm.keys import get_or_fetch_ssh_key
from vers_cli.vm.types import ConnectTarget, HeadInfo

logger = logging.getLogger(__name__)

VERS_DIR = ".vers"
HEAD_FILE = "HEAD"


def get_current_head(base_dir=".") -> HeadInfo:
    """Read ``.vers/HEAD``: JSON ``{"id", "alias"}`` or a legacy plain VM id."""
    head_path = Path(base_dir) / VERS_DIR / HEAD_FILE
    if not head_path.exists():
        raise FileNotFoundError("HEAD not found. Run 'vers init' first")

    content = head_path.read_text().strip()
    if not content:
        raise ValueError("HEAD is empty. Create a VM first with 'vers run'")

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        return HeadInfo(id=content)
    if not isinstance(data, dict):
        return HeadInfo(id=content)
    if not data.get("id"):
        raise ValueError("HEAD contains invalid data")
    return HeadInfo(id=data["id"], alias=data.get("alias", ""))


def aliases_path() -> Path:
    return Path.home() / ".vers" / "aliases.json"


def load_aliases() -> dict:
    path = aliases_path()
    if not path.exists():
        return {}
    try:
        aliases = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        logger.debug(f"Ignoring unreadable aliases file {path}: {e}")
        return {}
    return aliases if isinstance(aliases, dict) else {}


def resolve_alias(identifier) -> str:
    """Map an alias to its VM id; anything else is returned unchanged."""
    return load_aliases().get(identifier, identifier)


async def get_connect_target(identifier=None, transport=None) -> ConnectTarget:
    """Resolve *identifier* (HEAD when empty) and make sure its SSH key is on disk."""
    used_head = False
    if not identifier or not identifier.strip():
        try:
            identifier = get_current_head().id
        except (FileNotFoundError, ValueError) as e:
            raise ValueError(f"no VM ID provided and {e}") from e
        used_head = True

    vm_id = resolve_alias(identifier)
    key_path = await get_or_fetch_ssh_key(vm_id, transport=transport)
    return ConnectTarget(vm_id=vm_id, host=vm_id, key_path=key_path, used_head=used_head)
