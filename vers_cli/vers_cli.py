#!/usr/bin/env python3
"""Vers CLI: SSH access to Vers VMs, entrypoint."""

import argparse

from vers_cli.commands.connect import register_connect_command
from vers_cli.commands.copy import register_copy_command
from vers_cli.commands.execute import register_execute_command
from vers_cli.logging_setup import setup_cli_logging
from vers_cli.vm.config import debug_enabled


def build_parser():
    parser = argparse.ArgumentParser(prog="vers", description="SSH access to Vers VMs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_connect_command(subparsers)
    register_execute_command(subparsers)
    register_copy_command(subparsers)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_cli_logging(verbose=args.verbose or debug_enabled())
    args.func(args)


if __name__ == "__main__":
    main()
