"""CLI logging setup: plain %(message)s output, debug on demand."""

import logging
import sys

from vers_cli.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure the root logger for CLI commands.

    Progress goes to stderr so ``vers execute`` output on stdout stays
    exactly what the remote command wrote. *verbose* switches to DEBUG
    and prefixes records with the logger name.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    if verbose:
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)
    # asyncssh logs every channel open at INFO and packets at DEBUG
    logging.getLogger("asyncssh").setLevel(logging.INFO if verbose else logging.WARNING)
