"""Authentication method discovery: ssh-agent, key file, password."""

from __future__ import annotations

import logging
import os
import socket
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

import paramiko
from paramiko.agent import AgentSSH

from .config import Config


class SocketAgent(AgentSSH):
    """ssh-agent client bound to an explicit socket path.

    ``paramiko.Agent`` only looks at the process environment; this variant
    talks to whatever path the configuration resolved.
    """

    def __init__(self, path: str, timeout: Optional[float] = None):
        super().__init__()
        self.path = path
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            if timeout:
                sock.settimeout(timeout)
            sock.connect(path)
            sock.settimeout(None)
            self._connect(sock)
        except Exception:
            sock.close()
            raise

    def close(self) -> None:
        self._close()

    def __enter__(self) -> "SocketAgent":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass
class AgentAuth:
    agent: AgentSSH
    kind: str = field(default="agent", init=False)

    def keys(self) -> List[paramiko.PKey]:
        return list(self.agent.get_keys())


@dataclass
class KeyFileAuth:
    pkey: paramiko.PKey
    path: str = ""
    kind: str = field(default="publickey", init=False)


@dataclass
class PasswordAuth:
    password: str = field(repr=False)
    kind: str = field(default="password", init=False)


AuthMethod = Union[AgentAuth, KeyFileAuth, PasswordAuth]


def probe_agent(path: Optional[str], logger: logging.Logger, timeout: Optional[float] = None) -> Optional[SocketAgent]:
    """Connect to the agent at ``path``; None when unset or unreachable."""
    if not path:
        logger.debug("[AUTH] SSH_AUTH_SOCK not set; skipping agent")
        return None
    if not hasattr(socket, "AF_UNIX"):
        logger.debug("[AUTH] unix sockets unavailable; skipping agent")
        return None
    try:
        agent = SocketAgent(path, timeout=timeout)
    except (OSError, paramiko.SSHException) as exc:
        logger.warning(f"[AUTH] ssh-agent unreachable at {path}: {exc}")
        return None
    logger.debug(f"[AUTH] ssh-agent at {path} offers {len(agent.get_keys())} key(s)")
    return agent


def load_key_file(path: str, passphrase: Optional[str], logger: logging.Logger) -> Optional[paramiko.PKey]:
    expanded = os.path.expanduser(path)
    try:
        try:
            return paramiko.PKey.from_path(expanded)
        except (paramiko.PasswordRequiredException, TypeError):
            # cryptography reports a missing passphrase as TypeError
            if not passphrase:
                logger.warning(f"[AUTH] key {expanded} is encrypted and no passphrase is configured")
                return None
            return paramiko.PKey.from_path(expanded, passphrase=passphrase.encode("utf-8"))
    except (OSError, paramiko.SSHException, paramiko.UnknownKeyType, ValueError) as exc:
        logger.warning(f"[AUTH] unable to load key {expanded}: {exc}")
        return None


@contextmanager
def resolve_credentials(cfg: Config, logger: logging.Logger) -> Iterator[List[AuthMethod]]:
    """Yield the ordered authentication methods for ``cfg``.

    Order is agent, key file, password. The agent connection stays open for
    the duration of the ``with`` block and is closed on exit.
    """
    methods: List[AuthMethod] = []
    with ExitStack() as stack:
        agent = probe_agent(cfg.agent_socket, logger, timeout=cfg.timeout)
        if agent is not None:
            stack.enter_context(agent)
            methods.append(AgentAuth(agent))
        if cfg.key_path:
            pkey = load_key_file(cfg.key_path, cfg.target.password, logger)
            if pkey is not None:
                methods.append(KeyFileAuth(pkey, path=cfg.key_path))
        if cfg.target.password:
            methods.append(PasswordAuth(cfg.target.password))
        logger.debug("[AUTH] methods: " + (", ".join(m.kind for m in methods) or "none"))
        yield methods


__all__ = [
    "SocketAgent",
    "AgentAuth",
    "KeyFileAuth",
    "PasswordAuth",
    "AuthMethod",
    "probe_agent",
    "load_key_file",
    "resolve_credentials",
]
