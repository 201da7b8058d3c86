"""SSH session establishment and SFTP subsystem start-up."""

from __future__ import annotations

import logging
import os
import socket
from contextlib import ExitStack, closing, contextmanager
from typing import Iterator, List, Sequence

import paramiko

from .config import Config
from .credentials import AgentAuth, AuthMethod, KeyFileAuth, PasswordAuth, resolve_credentials
from .errors import AuthenticationError, ConnectError, SubsystemStartError
from .remote import RemoteFS


def dial(cfg: Config) -> socket.socket:
    target = cfg.target
    try:
        return socket.create_connection((target.host, target.port), timeout=cfg.timeout or None)
    except OSError as exc:
        raise ConnectError(f"unable to connect to [{target.address}]: {exc}") from exc


def load_known_hosts(cfg: Config) -> paramiko.HostKeys:
    keys = paramiko.HostKeys()
    for candidate in ("~/.ssh/known_hosts", cfg.known_hosts):
        if not candidate:
            continue
        path = os.path.expanduser(candidate)
        if os.path.exists(path):
            keys.load(path)
    return keys


def verify_host_key(transport: paramiko.Transport, cfg: Config, logger: logging.Logger) -> None:
    server_key = transport.get_remote_server_key()
    target = cfg.target
    if not cfg.strict_host_key_checking:
        logger.debug(f"[CONNECT] accepting {server_key.get_name()} host key for {target.address}")
        return
    lookup = target.host if target.port == 22 else f"[{target.host}]:{target.port}"
    known = load_known_hosts(cfg).lookup(lookup)
    if known is None or server_key.get_name() not in known:
        raise ConnectError(f"host key for [{target.address}] not found in known_hosts")
    if known[server_key.get_name()] != server_key:
        raise ConnectError(f"host key for [{target.address}] does not match known_hosts")


def authenticate(
    transport: paramiko.Transport,
    username: str,
    methods: Sequence[AuthMethod],
    logger: logging.Logger,
) -> str:
    """Try ``methods`` in order; return the kind that succeeded."""
    tried: List[str] = []
    for method in methods:
        tried.append(method.kind)
        try:
            if isinstance(method, AgentAuth):
                for key in method.keys():
                    try:
                        transport.auth_publickey(username, key)
                    except paramiko.BadAuthenticationType:
                        raise
                    except paramiko.AuthenticationException as exc:
                        logger.debug(f"[AUTH] agent key {key.get_name()} rejected: {exc}")
                        continue
                    if transport.is_authenticated():
                        return method.kind
            elif isinstance(method, KeyFileAuth):
                transport.auth_publickey(username, method.pkey)
            elif isinstance(method, PasswordAuth):
                transport.auth_password(username, method.password)
        except paramiko.AuthenticationException as exc:
            logger.debug(f"[AUTH] {method.kind} rejected: {exc}")
            continue
        except (paramiko.SSHException, OSError) as exc:
            raise ConnectError(f"connection lost during {method.kind} authentication: {exc}") from exc
        if transport.is_authenticated():
            return method.kind
    raise AuthenticationError(
        f"unable to authenticate as {username!r}; tried: " + (", ".join(tried) or "no methods")
    )


def establish_session(cfg: Config, methods: Sequence[AuthMethod], logger: logging.Logger) -> paramiko.Transport:
    target = cfg.target
    if not methods:
        raise AuthenticationError(
            f"no authentication methods available for {target.user}@{target.address} "
            "(no ssh-agent, key or password)"
        )
    sock = dial(cfg)
    transport = paramiko.Transport(sock)
    try:
        try:
            transport.start_client(timeout=cfg.timeout or None)
        except (paramiko.SSHException, OSError, EOFError) as exc:
            raise ConnectError(f"unable to connect to [{target.address}]: {exc}") from exc
        verify_host_key(transport, cfg, logger)
        kind = authenticate(transport, target.user, methods, logger)
    except BaseException:
        transport.close()
        raise
    logger.info(f"[CONNECT] {target.user}@{target.address} authenticated via {kind}")
    return transport


def open_subsystem(transport: paramiko.Transport, cfg: Config) -> RemoteFS:
    try:
        sftp = paramiko.SFTPClient.from_transport(
            transport,
            window_size=cfg.sftp_window_size,
            max_packet_size=cfg.sftp_max_packet_size,
        )
    except (paramiko.SSHException, OSError, EOFError) as exc:
        raise SubsystemStartError(f"unable to start sftp subsystem: {exc}") from exc
    if sftp is None:
        raise SubsystemStartError("unable to start sftp subsystem: channel refused")
    return RemoteFS(sftp)


@contextmanager
def connect(cfg: Config, logger: logging.Logger) -> Iterator[RemoteFS]:
    """Yield a ready ``RemoteFS``; the SFTP client closes before the transport."""
    with ExitStack() as stack:
        with resolve_credentials(cfg, logger) as methods:
            transport = establish_session(cfg, methods, logger)
        stack.enter_context(closing(transport))
        fs = stack.enter_context(open_subsystem(transport, cfg))
        logger.debug("[SFTP] subsystem started")
        yield fs


__all__ = [
    "dial",
    "load_known_hosts",
    "verify_host_key",
    "authenticate",
    "establish_session",
    "open_subsystem",
    "connect",
]
