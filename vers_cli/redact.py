"""Secret redaction for log output: API keys and bearer tokens."""

import logging
import os
import re

# Env vars whose values should be redacted from all output
_SECRET_ENV_VARS = [
    "VERS_API_KEY",
]

_MIN_SECRET_LENGTH = 8  # skip short values to avoid false positives

_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+")


def _collect_secret_values() -> set[str]:
    values = set()
    for var in _SECRET_ENV_VARS:
        val = os.environ.get(var, "")
        if len(val) >= _MIN_SECRET_LENGTH:
            values.add(val)
    return values


def _build_patterns(values: set[str]) -> list[re.Pattern]:
    # Sort by length descending so longer values match first
    return [re.compile(re.escape(v)) for v in sorted(values, key=len, reverse=True)]


# Lazy-initialized module cache
_patterns: list[re.Pattern] | None = None


def _get_patterns() -> list[re.Pattern]:
    global _patterns
    if _patterns is None:
        _patterns = _build_patterns(_collect_secret_values())
    return _patterns


def redact_secrets(text: str) -> str:
    """Replace known secret values and bearer tokens with '***'."""
    return _apply(text, _get_patterns())


def _apply(text: str, patterns: list[re.Pattern]) -> str:
    for p in patterns:
        text = p.sub("***", text)
    return _BEARER_PATTERN.sub(r"\1***", text)


class SecretRedactingFilter(logging.Filter):
    """Logging filter that replaces secret values in log records with '***'.

    Attach it to handlers: logger-level filters do not see records
    propagated from child loggers.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        patterns = _get_patterns()
        record.msg = _apply(str(record.msg), patterns)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: _apply(v, patterns) if isinstance(v, str) else v for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(_apply(a, patterns) if isinstance(a, str) else a for a in record.args)
        return True
