"""VM target resolution: HEAD, aliases, API config and cached SSH keys."""

from vers_cli.vm.config import get_api_key, get_vers_url
from vers_cli.vm.keys import KeyFetchError, get_or_fetch_ssh_key, ssh_key_path
from vers_cli.vm.resolve import get_connect_target, get_current_head, resolve_alias
from vers_cli.vm.types import ConnectTarget, HeadInfo

__all__ = [
    "ConnectTarget",
    "HeadInfo",
    "KeyFetchError",
    "get_api_key",
    "get_vers_url",
    "get_connect_target",
    "get_current_head",
    "get_or_fetch_ssh_key",
    "resolve_alias",
    "ssh_key_path",
]
