"""Subcommand validation and dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import IO, Callable, Dict, Optional, Sequence

import paramiko

from .cli import SUBCOMMANDS
from .config import Config
from .errors import IOStreamError, UsageError
from .remote import RemoteFS, closing_handle, copy_stream


@dataclass(frozen=True)
class CommandInvocation:
    subcommand: str
    remote_path: Optional[str] = None


def parse_invocation(subcommand: Optional[str], args: Sequence[str], prog: str = "gsftp") -> CommandInvocation:
    """Validate the positional arguments before any connection is made."""
    if not subcommand:
        raise UsageError("subcommand required")
    if subcommand not in SUBCOMMANDS:
        raise UsageError(f"unknown subcommand: {subcommand}")
    if not args or not args[0]:
        raise UsageError(f"{prog} {subcommand}: remote path required")
    return CommandInvocation(subcommand, args[0])


def cmd_ls(fs: RemoteFS, path: str, cfg: Config, logger: logging.Logger, stdin: IO[bytes], stdout: IO[bytes]) -> int:
    errors = 0
    for entry in fs.walk(path):
        if entry.error is not None:
            errors += 1
            logger.warning(f"[LS] {entry.error}")
            continue
        stdout.write(entry.path.encode("utf-8", errors="surrogateescape") + b"\n")
    stdout.flush()
    if errors:
        logger.info(f"[LS] {path}: {errors} entr{'y' if errors == 1 else 'ies'} skipped")
    return errors


def cmd_fetch(fs: RemoteFS, path: str, cfg: Config, logger: logging.Logger, stdin: IO[bytes], stdout: IO[bytes]) -> int:
    with closing_handle(fs.open(path), path) as fh:
        try:
            fh.prefetch()
        except (OSError, paramiko.SSHException) as exc:
            raise IOStreamError(f"unable to prefetch {path}: {exc}") from exc
        copied = copy_stream(fh, stdout, cfg.copy_chunk_size)
    logger.debug(f"[FETCH] {path}: {copied} bytes")
    return 0


def cmd_put(fs: RemoteFS, path: str, cfg: Config, logger: logging.Logger, stdin: IO[bytes], stdout: IO[bytes]) -> int:
    with closing_handle(fs.create(path), path) as fh:
        fh.set_pipelined(True)
        copied = copy_stream(stdin, fh, cfg.copy_chunk_size)
    logger.debug(f"[PUT] {path}: {copied} bytes")
    return 0


def cmd_stat(fs: RemoteFS, path: str, cfg: Config, logger: logging.Logger, stdin: IO[bytes], stdout: IO[bytes]) -> int:
    info = fs.stat(path)
    stdout.write(f"{info}\n".encode("utf-8", errors="surrogateescape"))
    stdout.flush()
    return 0


def cmd_rm(fs: RemoteFS, path: str, cfg: Config, logger: logging.Logger, stdin: IO[bytes], stdout: IO[bytes]) -> int:
    fs.remove(path)
    logger.debug(f"[RM] {path} removed")
    return 0


Handler = Callable[[RemoteFS, str, Config, logging.Logger, IO[bytes], IO[bytes]], int]

COMMANDS: Dict[str, Handler] = {
    "ls": cmd_ls,
    "fetch": cmd_fetch,
    "put": cmd_put,
    "stat": cmd_stat,
    "rm": cmd_rm,
}


def run_command(
    invocation: CommandInvocation,
    fs: RemoteFS,
    cfg: Config,
    logger: logging.Logger,
    stdin: IO[bytes],
    stdout: IO[bytes],
) -> int:
    handler = COMMANDS.get(invocation.subcommand)
    if handler is None:
        raise UsageError(f"unknown subcommand: {invocation.subcommand}")
    return handler(fs, invocation.remote_path or "", cfg, logger, stdin, stdout)


__all__ = ["CommandInvocation", "COMMANDS", "parse_invocation", "run_command"]
