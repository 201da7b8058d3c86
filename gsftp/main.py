"""High-level entrypoint for gsftp."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import IO, List, Optional

import paramiko

from .cli import parse_args
from .commands import parse_invocation, run_command
from .config import Config, load_config
from .errors import GsftpError
from .log_utils import setup_logger
from .session import connect


def execute(cfg: Config, subcommand: Optional[str], args: List[str], logger: logging.Logger,
            stdin: IO[bytes], stdout: IO[bytes], prog: str = "gsftp") -> int:
    """Validate, connect and run one subcommand. Raises ``GsftpError`` on failure."""
    invocation = parse_invocation(subcommand, args, prog)
    logger.debug(f"[{invocation.subcommand.upper()}] {cfg.target.user}@{cfg.target.address}:{invocation.remote_path}")
    with connect(cfg, logger) as fs:
        run_command(invocation, fs, cfg, logger, stdin, stdout)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logger = setup_logger(None, "DEBUG" if args.verbose else "INFO")

    try:
        cfg = load_config(Path(args.env).expanduser(), args)
        logger = setup_logger(cfg.log_file, cfg.log_level)

        if args.show_config:
            logger.info("[CONFIG]\n" + json.dumps(cfg.masked(), ensure_ascii=False, indent=2))

        return execute(cfg, args.subcommand, args.args, logger, sys.stdin.buffer, sys.stdout.buffer)
    except GsftpError as exc:
        logger.error(f"[ERROR] {exc}")
        return exc.exit_code
    except (OSError, paramiko.SSHException) as exc:
        logger.error(f"[ERROR] {exc}")
        return 1
    except KeyboardInterrupt:
        logger.error("[ERROR] interrupted")
        return 130


__all__ = ["execute", "main"]
