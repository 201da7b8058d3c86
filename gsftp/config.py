"""Configuration loading for gsftp."""

from __future__ import annotations

import getpass
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import UsageError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 22
DEFAULT_TIMEOUT = 30
DEFAULT_CHUNK_SIZE = 32768
MIN_CHUNK_SIZE = 4096


class Env:
    """Key/value settings from a ``.env`` file or a YAML ``defaults``/``profiles`` file.

    Process environment variables always win over values from the file.
    """

    def __init__(self, path: Path, profile: Optional[str] = None, environ: Optional[Mapping[str, str]] = None):
        self.path = path
        self.profile = profile
        self.environ = os.environ if environ is None else environ
        self.data: Dict[str, Any] = {}
        if not path.exists():
            return
        if path.suffix.lower() in {".yaml", ".yml"}:
            self.data = self._load_yaml(path)
        else:
            self.data = self._load_env(path)

    def _load_env(self, path: Path) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for raw in path.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            data[key.strip()] = value.strip().strip('"').strip("'")
        return data

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"{path} root must be a mapping")
        defaults = raw.get("defaults") or {}
        profiles = raw.get("profiles") or {}
        if not isinstance(defaults, dict) or not isinstance(profiles, dict):
            raise ValueError(f"{path} defaults and profiles must be mappings")

        profiles = {str(k): v or {} for k, v in profiles.items()}
        merged = {str(k).upper(): v for k, v in defaults.items()}
        chosen = self.profile or raw.get("default_profile")
        if chosen is None:
            if not profiles:
                return merged
            if len(profiles) > 1:
                raise ValueError("Profile must be specified (--profile). Available: " + ", ".join(sorted(profiles)))
            chosen = next(iter(profiles))
        chosen = str(chosen)
        if chosen not in profiles:
            raise KeyError(f"Profile '{chosen}' not found. Available: " + ", ".join(sorted(profiles)))
        if not isinstance(profiles[chosen], dict):
            raise ValueError(f"Profile '{chosen}' must be a mapping")
        merged.update({str(k).upper(): v for k, v in profiles[chosen].items()})
        self.profile = chosen
        return merged

    def get(self, key: str, default: Any = None) -> Any:
        return self.environ.get(key, self.data.get(key, default))

    def first(self, *keys: str, default: Any = None) -> Any:
        for key in keys:
            val = self.get(key)
            if val is not None and val != "":
                return val
        return default

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        val = self.get(key)
        if val is None or val == "":
            return default
        try:
            return int(str(val))
        except ValueError:
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        val = self.get(key)
        if val is None or val == "":
            return default
        if isinstance(val, bool):
            return val
        return str(val).lower() not in {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ConnectionTarget:
    user: str
    host: str
    port: int
    password: Optional[str] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class Config:
    target: ConnectionTarget
    key_path: Optional[str] = None
    agent_socket: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT
    strict_host_key_checking: bool = False
    known_hosts: Optional[str] = None
    copy_chunk_size: int = DEFAULT_CHUNK_SIZE
    sftp_window_size: Optional[int] = None
    sftp_max_packet_size: Optional[int] = None
    log_file: Optional[str] = None
    log_level: str = "INFO"
    profile_name: str = "default"
    config_path: str = ""

    def masked(self) -> Dict[str, Any]:
        printable = asdict(self)
        if printable["target"].get("password"):
            printable["target"]["password"] = "***"
        return printable


def parse_port(value: Any) -> int:
    try:
        port = int(str(value))
    except ValueError:
        raise UsageError(f"invalid port: {value!r}") from None
    if not 0 < port < 65536:
        raise UsageError(f"port out of range: {port}")
    return port


def parse_timeout(value: Any) -> int:
    try:
        timeout = int(str(value))
    except ValueError:
        raise UsageError(f"invalid timeout: {value!r}") from None
    if timeout < 0:
        raise UsageError(f"timeout must not be negative: {timeout}")
    return timeout


def default_user(env: Env) -> str:
    user = env.first("GSFTP_USER", "USER")
    if user:
        return str(user)
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return ""


def load_config(env_path: Path, args: Any, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build the immutable run configuration.

    Precedence per setting: command-line flag, process environment,
    config file profile, config file defaults, built-in default.
    """
    try:
        env = Env(env_path, profile=getattr(args, "profile", None), environ=environ)
    except (ValueError, KeyError, yaml.YAMLError) as exc:
        raise UsageError(f"invalid configuration {env_path}: {exc}") from exc

    user = getattr(args, "user", None) or default_user(env)
    host = getattr(args, "host", None) or str(env.get("GSFTP_HOST", DEFAULT_HOST))
    port = parse_port(getattr(args, "port", None) or env.get("GSFTP_PORT", DEFAULT_PORT))
    password = getattr(args, "password", None)
    if password is None:
        password = env.first("GSFTP_PASSWORD", "SOCKSIE_SSH_PASSWORD")

    timeout = getattr(args, "timeout", None)
    if timeout is None:
        timeout = env.first("GSFTP_TIMEOUT", default=DEFAULT_TIMEOUT)
    strict = getattr(args, "strict_host_key_checking", None)
    if strict is None:
        strict = env.get_bool("GSFTP_STRICT_HOST_KEY_CHECKING", False)

    log_level = "DEBUG" if getattr(args, "verbose", False) else str(env.get("GSFTP_LOG_LEVEL", "INFO")).upper()

    return Config(
        target=ConnectionTarget(
            user=str(user),
            host=host,
            port=port,
            password=str(password) if password else None,
        ),
        key_path=getattr(args, "key_path", None) or env.get("GSFTP_KEY_PATH"),
        agent_socket=env.get("SSH_AUTH_SOCK") or None,
        timeout=parse_timeout(timeout),
        strict_host_key_checking=bool(strict),
        known_hosts=env.get("GSFTP_KNOWN_HOSTS"),
        copy_chunk_size=max(MIN_CHUNK_SIZE, env.get_int("GSFTP_COPY_CHUNK_SIZE", DEFAULT_CHUNK_SIZE)),
        sftp_window_size=env.get_int("GSFTP_SFTP_WINDOW_SIZE"),
        sftp_max_packet_size=env.get_int("GSFTP_SFTP_MAX_PACKET_SIZE"),
        log_file=getattr(args, "log_file", None) or env.get("GSFTP_LOG_FILE"),
        log_level=log_level if isinstance(logging.getLevelName(log_level), int) else "INFO",
        profile_name=env.profile or "default",
        config_path=str(env_path),
    )


__all__ = [
    "Env",
    "ConnectionTarget",
    "Config",
    "parse_port",
    "parse_timeout",
    "default_user",
    "load_config",
]
