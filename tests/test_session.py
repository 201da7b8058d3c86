from __future__ import annotations

import socket
from contextlib import contextmanager
from dataclasses import replace

import paramiko
import pytest

from fakes import FakeAgent, FakeKey, FakeSFTP, FakeTransport
from gsftp import session
from gsftp.credentials import AgentAuth, KeyFileAuth, PasswordAuth
from gsftp.errors import AuthenticationError, ConnectError, SubsystemStartError
from gsftp.remote import RemoteFS


def test_authenticate_tries_methods_in_order(logger) -> None:
    transport = FakeTransport(accept={"password"})
    methods = [AgentAuth(FakeAgent([FakeKey("k1"), FakeKey("k2")])), PasswordAuth("pw")]

    kind = session.authenticate(transport, "alice", methods, logger)

    assert kind == "password"
    assert transport.calls == [("publickey", "k1"), ("publickey", "k2"), ("password", "pw")]


def test_authenticate_stops_at_first_accepted_agent_key(logger) -> None:
    transport = FakeTransport(accept={"k1"})
    methods = [AgentAuth(FakeAgent([FakeKey("k1"), FakeKey("k2")])), PasswordAuth("pw")]

    assert session.authenticate(transport, "alice", methods, logger) == "agent"
    assert transport.calls == [("publickey", "k1")]


def test_authenticate_offers_key_file_after_agent_and_before_password(logger) -> None:
    key = paramiko.RSAKey.generate(1024)
    transport = FakeTransport(accept={key.get_name()})
    methods = [AgentAuth(FakeAgent([FakeKey("agent-key")])), KeyFileAuth(key, path="id_rsa"), PasswordAuth("pw")]

    assert session.authenticate(transport, "alice", methods, logger) == "publickey"
    assert transport.calls == [("publickey", "agent-key"), ("publickey", key.get_name())]


class PasswordOnlyTransport(FakeTransport):
    def auth_publickey(self, username, key):
        self.calls.append(("publickey", key.get_name()))
        raise paramiko.BadAuthenticationType("publickey not allowed", ["password"])


def test_authenticate_moves_on_when_publickey_not_allowed(logger) -> None:
    transport = PasswordOnlyTransport(accept={"password"})
    methods = [AgentAuth(FakeAgent([FakeKey("k1")])), PasswordAuth("pw")]

    assert session.authenticate(transport, "alice", methods, logger) == "password"


def test_authenticate_all_rejected(logger) -> None:
    transport = FakeTransport()

    with pytest.raises(AuthenticationError) as excinfo:
        session.authenticate(transport, "alice", [AgentAuth(FakeAgent()), PasswordAuth("pw")], logger)

    assert "agent, password" in str(excinfo.value)


def test_authenticate_transport_failure_is_connect_error(logger) -> None:
    transport = FakeTransport(fail_with=paramiko.SSHException("socket closed"))

    with pytest.raises(ConnectError):
        session.authenticate(transport, "alice", [PasswordAuth("pw")], logger)


def test_empty_method_list_fails_without_dialing(cfg, logger, monkeypatch) -> None:
    def no_dial(*args, **kwargs):
        raise AssertionError("dial attempted")

    monkeypatch.setattr(socket, "create_connection", no_dial)

    with pytest.raises(AuthenticationError):
        session.establish_session(cfg, [], logger)


def test_dial_failure_names_address(cfg, monkeypatch) -> None:
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("refused")

    monkeypatch.setattr(socket, "create_connection", refuse)

    with pytest.raises(ConnectError) as excinfo:
        session.dial(cfg)

    assert "[example.test:2222]" in str(excinfo.value)


def test_open_subsystem_failure(cfg, monkeypatch) -> None:
    def boom(*args, **kwargs):
        raise paramiko.SSHException("subsystem request failed")

    monkeypatch.setattr(paramiko.SFTPClient, "from_transport", boom)

    with pytest.raises(SubsystemStartError, match="unable to start sftp subsystem"):
        session.open_subsystem(object(), cfg)


class RecordingSFTP(FakeSFTP):
    def __init__(self, events):
        super().__init__()
        self.events = events

    def close(self) -> None:
        super().close()
        self.events.append("sftp")


def _patch_connect(monkeypatch, events):
    @contextmanager
    def fake_credentials(cfg, logger):
        yield [PasswordAuth("pw")]
        events.append("credentials")

    monkeypatch.setattr(session, "resolve_credentials", fake_credentials)
    monkeypatch.setattr(session, "establish_session", lambda cfg, methods, logger: FakeTransport(events=events))
    monkeypatch.setattr(session, "open_subsystem", lambda transport, cfg: RemoteFS(RecordingSFTP(events)))


def test_connect_closes_sftp_before_transport(cfg, logger, monkeypatch) -> None:
    events = []
    _patch_connect(monkeypatch, events)

    with session.connect(cfg, logger) as fs:
        assert isinstance(fs, RemoteFS)
        events.append("work")

    assert events == ["credentials", "work", "sftp", "transport"]


def test_connect_releases_handles_on_error(cfg, logger, monkeypatch) -> None:
    events = []
    _patch_connect(monkeypatch, events)

    with pytest.raises(RuntimeError):
        with session.connect(cfg, logger):
            raise RuntimeError("boom")

    assert events[-2:] == ["sftp", "transport"]


def test_strict_host_key_checking(cfg, logger, tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    known_key = paramiko.RSAKey.generate(1024)
    other_key = paramiko.RSAKey.generate(1024)
    known_hosts = tmp_path / "known_hosts"
    host_keys = paramiko.HostKeys()
    host_keys.add("[example.test]:2222", known_key.get_name(), known_key)
    host_keys.save(str(known_hosts))
    strict = replace(cfg, strict_host_key_checking=True, known_hosts=str(known_hosts))

    session.verify_host_key(FakeTransport(server_key=known_key), strict, logger)

    with pytest.raises(ConnectError, match="does not match"):
        session.verify_host_key(FakeTransport(server_key=other_key), strict, logger)

    unknown_host = replace(strict, target=replace(strict.target, host="other.test"))
    with pytest.raises(ConnectError, match="not found"):
        session.verify_host_key(FakeTransport(server_key=known_key), unknown_host, logger)

    session.verify_host_key(FakeTransport(server_key=other_key), cfg, logger)
