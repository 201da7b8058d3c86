"""Command-line argument parsing for gsftp."""

from __future__ import annotations

import argparse
from typing import List, Optional

SUBCOMMANDS = ("ls", "fetch", "put", "stat", "rm")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gsftp",
        description="Minimal SFTP client: list, fetch, put, stat and remove remote files",
    )
    parser.add_argument("-user", "--user", type=str, help="ssh username (default: $USER)")
    parser.add_argument("-host", "--host", type=str, help="ssh server hostname (default: localhost)")
    parser.add_argument("-port", "--port", type=str, help="ssh server port (default: 22)")
    parser.add_argument("-pass", "--pass", dest="password", type=str, help="ssh password (default: $SOCKSIE_SSH_PASSWORD)")
    parser.add_argument("-key", "--key", dest="key_path", type=str, help="Private key file to offer after the agent keys")

    parser.add_argument("--env", type=str, default="gsftp.yaml", help="Path to configuration file (.env or YAML)")
    parser.add_argument("--profile", type=str, help="Configuration profile name")
    parser.add_argument("--timeout", type=int, help="Connect/handshake timeout in seconds")
    parser.add_argument("--strict-host-key-checking", action="store_true", default=None, help="Reject hosts missing from known_hosts")
    parser.add_argument("--log-file", type=str, help="Also write log records to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging (includes paramiko)")
    parser.add_argument("--show-config", action="store_true", help="Log the effective configuration before running")

    parser.add_argument("subcommand", nargs="?", help="One of: " + ", ".join(SUBCOMMANDS))
    # everything after the subcommand is positional
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Subcommand arguments (remote path)")
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    args = build_parser().parse_args(argv)
    # argparse.REMAINDER keeps a leading '--'; strip it
    if args.args and args.args[0] == "--":
        args.args = args.args[1:]
    return args


__all__ = ["SUBCOMMANDS", "build_parser", "parse_args"]
