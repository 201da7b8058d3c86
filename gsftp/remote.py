"""File-oriented operations over a paramiko SFTP client."""

from __future__ import annotations

import posixpath
import stat
from contextlib import contextmanager
from dataclasses import dataclass
from typing import IO, Iterator, List, Optional, Tuple

import paramiko

from .errors import FileOperationError, IOStreamError, WalkEntryError


@dataclass
class WalkEntry:
    path: str
    attrs: Optional[paramiko.SFTPAttributes] = None
    error: Optional[WalkEntryError] = None

    @property
    def is_dir(self) -> bool:
        return self.attrs is not None and self.attrs.st_mode is not None and stat.S_ISDIR(self.attrs.st_mode)


@dataclass
class FileInfo:
    name: str
    size: int
    mode: int

    @property
    def mode_string(self) -> str:
        return stat.filemode(self.mode)

    def __str__(self) -> str:
        return f"{self.name} {self.size} {self.mode_string}"


class RemoteFS:
    """Subsystem client: open/create/stat/remove/walk on the remote side."""

    def __init__(self, sftp: paramiko.SFTPClient):
        self.sftp = sftp

    def open(self, path: str) -> paramiko.SFTPFile:
        try:
            return self.sftp.open(path, "rb")
        except (OSError, paramiko.SSHException) as exc:
            raise FileOperationError(f"unable to open {path}: {exc}") from exc

    def create(self, path: str) -> paramiko.SFTPFile:
        try:
            return self.sftp.open(path, "wb")
        except (OSError, paramiko.SSHException) as exc:
            raise FileOperationError(f"unable to create {path}: {exc}") from exc

    def remove(self, path: str) -> None:
        try:
            self.sftp.remove(path)
        except (OSError, paramiko.SSHException) as exc:
            raise FileOperationError(f"unable to remove file: {exc}") from exc

    def stat(self, path: str) -> FileInfo:
        """Stat through an open handle, so directories and unreadable files fail like a read would."""
        with closing_handle(self.open(path), path) as fh:
            try:
                attrs = fh.stat()
            except (OSError, paramiko.SSHException) as exc:
                raise FileOperationError(f"unable to stat file: {exc}") from exc
        return FileInfo(
            name=posixpath.basename(path.rstrip("/")) or path,
            size=int(attrs.st_size or 0),
            mode=int(attrs.st_mode or 0),
        )

    def walk(self, root: str) -> Iterator[WalkEntry]:
        """Depth-first pre-order walk of ``root``.

        Children are visited in lexical order and symlinks are not followed.
        A directory that cannot be listed is yielded, then reported once as an
        error entry; the walk then continues with the remaining entries.
        """
        try:
            root_attrs = self.sftp.lstat(root)
        except (OSError, paramiko.SSHException) as exc:
            yield WalkEntry(root, error=WalkEntryError(root, exc))
            return

        stack: List[Tuple[str, paramiko.SFTPAttributes]] = [(root, root_attrs)]
        while stack:
            path, attrs = stack.pop()
            entry = WalkEntry(path, attrs)
            yield entry
            if not entry.is_dir:
                continue
            try:
                children = self.sftp.listdir_attr(path)
            except (OSError, paramiko.SSHException) as exc:
                yield WalkEntry(path, attrs, WalkEntryError(path, exc))
                continue
            children = [c for c in children if c.filename not in {".", ".."}]
            for child in sorted(children, key=lambda c: c.filename, reverse=True):
                stack.append((posixpath.normpath(posixpath.join(path, child.filename)), child))

    def close(self) -> None:
        self.sftp.close()

    def __enter__(self) -> "RemoteFS":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@contextmanager
def closing_handle(fh: paramiko.SFTPFile, path: str) -> Iterator[paramiko.SFTPFile]:
    """Close ``fh`` on exit; pipelined write errors only surface at close."""
    try:
        yield fh
    finally:
        try:
            fh.close()
        except (OSError, paramiko.SSHException) as exc:
            raise IOStreamError(f"unable to close {path}: {exc}") from exc


def copy_stream(src: IO[bytes], dst: IO[bytes], chunk_size: int = 32768) -> int:
    """Copy ``src`` to ``dst`` until EOF and return the byte count."""
    copied = 0
    while True:
        try:
            buf = src.read(chunk_size)
        except (OSError, paramiko.SSHException) as exc:
            raise IOStreamError(f"read failed after {copied} bytes: {exc}") from exc
        if not buf:
            break
        try:
            dst.write(buf)
        except (OSError, paramiko.SSHException) as exc:
            raise IOStreamError(f"write failed after {copied} bytes: {exc}") from exc
        copied += len(buf)
    try:
        dst.flush()
    except (OSError, paramiko.SSHException) as exc:
        raise IOStreamError(f"flush failed after {copied} bytes: {exc}") from exc
    return copied


__all__ = ["WalkEntry", "FileInfo", "RemoteFS", "closing_handle", "copy_stream"]
