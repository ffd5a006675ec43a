from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .constants import (
    BACKEND_IPFS,
    DEFAULT_IPFS_HOST,
    DEFAULT_IPFS_PORT,
    DEFAULT_IPFS_PROTOCOL,
    DEFAULT_TIMEOUT,
)
from .errors import ConfigurationError


ENV_BACKEND = "SEALDRIVE_BACKEND"
ENV_STORE_DIR = "SEALDRIVE_STORE_DIR"
ENV_HOST = "SEALDRIVE_IPFS_HOST"
ENV_PORT = "SEALDRIVE_IPFS_PORT"
ENV_PROTOCOL = "SEALDRIVE_IPFS_PROTOCOL"
ENV_TIMEOUT = "SEALDRIVE_IPFS_TIMEOUT"


def _parse_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid port: {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port out of range: {port}")
    return port


def _parse_timeout(value: Any) -> float:
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid timeout: {value!r}") from None
    if timeout <= 0:
        raise ConfigurationError("Timeout must be positive")
    return timeout


@dataclass(frozen=True)
class StorageConfig:
    """Connection settings for the remote content-addressable backend."""

    host: str = DEFAULT_IPFS_HOST
    port: int = DEFAULT_IPFS_PORT
    protocol: str = DEFAULT_IPFS_PROTOCOL
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        if self.protocol not in ("http", "https"):
            raise ConfigurationError(f"Unsupported protocol: {self.protocol!r}")
        if not self.host:
            raise ConfigurationError("Host must not be empty")
        _parse_port(self.port)
        _parse_timeout(self.timeout)

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}/api/v0"

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "StorageConfig":
        values = values or {}
        return cls(
            host=values.get("host", DEFAULT_IPFS_HOST),
            port=_parse_port(values.get("port", DEFAULT_IPFS_PORT)),
            protocol=values.get("protocol", DEFAULT_IPFS_PROTOCOL),
            timeout=_parse_timeout(values.get("timeout", DEFAULT_TIMEOUT)),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorageConfig":
        env = os.environ if environ is None else environ
        return cls.from_mapping(
            {
                "host": env.get(ENV_HOST, DEFAULT_IPFS_HOST),
                "port": env.get(ENV_PORT, DEFAULT_IPFS_PORT),
                "protocol": env.get(ENV_PROTOCOL, DEFAULT_IPFS_PROTOCOL),
                "timeout": env.get(ENV_TIMEOUT, DEFAULT_TIMEOUT),
            }
        )


def default_backend(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get(ENV_BACKEND, BACKEND_IPFS)


def default_store_dir(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    env = os.environ if environ is None else environ
    return env.get(ENV_STORE_DIR) or None
