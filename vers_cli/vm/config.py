"""API endpoint and credentials from the environment and ``~/.versrc``."""

import json
import os
from pathlib import Path
from urllib.parse import urlsplit

DEFAULT_VERS_URL = "https://api.vers.sh"


def get_vers_url() -> str:
    """Return ``VERS_URL`` (or the default) without a trailing slash.

    Raises:
        ValueError: if the URL scheme is not http or https.
    """
    url = os.environ.get("VERS_URL", "").strip() or DEFAULT_VERS_URL
    if urlsplit(url).scheme not in ("http", "https"):
        raise ValueError(f"invalid VERS_URL {url}; URL must include scheme http:// or https://")
    return url.rstrip("/")


def config_path() -> Path:
    return Path.home() / ".versrc"


def load_config() -> dict:
    """Parse ``~/.versrc``; a missing or empty file is an empty config."""
    path = config_path()
    if not path.exists():
        return {}
    text = path.read_text()
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"failed to parse config file {path}: {e}") from e


def get_api_key() -> str:
    """``VERS_API_KEY`` if set, else ``apiKey`` from ``~/.versrc`` (may be empty)."""
    api_key = os.environ.get("VERS_API_KEY", "")
    if api_key:
        return api_key
    return load_config().get("apiKey", "")


def debug_enabled() -> bool:
    return os.environ.get("VERS_DEBUG", "").lower() == "true"
