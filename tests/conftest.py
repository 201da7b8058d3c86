from __future__ import annotations

import logging

import pytest

from fakes import FakeSFTP
from gsftp.config import Config, ConnectionTarget


@pytest.fixture
def fake_sftp() -> FakeSFTP:
    sftp = FakeSFTP()
    sftp.mkdir("/data")
    sftp.add_file("/data/a.txt", b"alpha\n")
    sftp.mkdir("/data/sub")
    sftp.add_file("/data/sub/b.bin", b"\x00\x01\x02", mode=0o600)
    sftp.add_file("/data/z.txt", b"zed")
    return sftp


@pytest.fixture
def cfg() -> Config:
    return Config(target=ConnectionTarget(user="alice", host="example.test", port=2222, password="s3cret"))


@pytest.fixture
def logger() -> logging.Logger:
    log = logging.getLogger("tests.gsftp")
    log.setLevel(logging.DEBUG)
    return log
