#!/usr/bin/env python3
"""Vers CLI: run from a source checkout without installing."""

from vers_cli.vers_cli import main

if __name__ == "__main__":
    main()
