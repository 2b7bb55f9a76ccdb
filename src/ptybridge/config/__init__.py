"""Configuration — Pydantic models for ptybridge settings."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

SHELL_CANDIDATES = (
    "/bin/bash",
    "/usr/bin/bash",
    "/bin/sh",
    "/usr/bin/sh",
)
FALLBACK_SHELL = "bash"

DEFAULT_BIND = "0.0.0.0:7070"
DEFAULT_MAX_LINES = 2000
DEFAULT_TICK_MS = 16


def resolve_shell(env: dict[str, str] | None = None) -> str:
    """Pick the shell to run.

    ``PTYBRIDGE_SHELL`` wins; otherwise the first candidate that exists on
    disk; otherwise plain ``bash`` and let PATH lookup sort it out.
    """
    environ = os.environ if env is None else env
    override = environ.get("PTYBRIDGE_SHELL")
    if override:
        return override
    for path in SHELL_CANDIDATES:
        if os.path.exists(path):
            return path
    return FALLBACK_SHELL


def shell_name(shell_path: str) -> str:
    """Short display name for a shell path (``/bin/bash`` -> ``bash``)."""
    return Path(shell_path).name or "shell"


def parse_bind(bind: str) -> tuple[str, int]:
    """Split ``host:port`` into its parts.

    Raises ValueError for anything that is not a usable socket address.
    """
    host, sep, port_text = bind.rpartition(":")
    if not sep or not host:
        raise ValueError(f"bind address must look like host:port, got {bind!r}")
    host = host.strip("[]")
    try:
        port = int(port_text)
    except ValueError:
        raise ValueError(f"invalid port in bind address {bind!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in bind address {bind!r}")
    return host, port


class ServerConfig(BaseModel):
    """Remote bridge configuration.

    Frozen after construction; every connection reads the same instance.
    """

    model_config = ConfigDict(frozen=True)

    shell: str = Field(default_factory=resolve_shell)
    shell_args: tuple[str, ...] = Field(default=("-i",))
    bind: str = Field(default=DEFAULT_BIND, description="host:port to listen on")
    token: str | None = Field(
        default=None,
        description="Shared secret; unset means every connection is accepted",
    )

    @field_validator("bind")
    @classmethod
    def _check_bind(cls, value: str) -> str:
        parse_bind(value)
        return value

    @field_validator("token")
    @classmethod
    def _empty_token_is_unset(cls, value: str | None) -> str | None:
        return value or None

    @property
    def host(self) -> str:
        return parse_bind(self.bind)[0]

    @property
    def port(self) -> int:
        return parse_bind(self.bind)[1]

    @property
    def open_mode(self) -> bool:
        return self.token is None


class TerminalConfig(BaseModel):
    """Local interactive terminal configuration."""

    model_config = ConfigDict(frozen=True)

    shell: str = Field(default_factory=resolve_shell)
    shell_args: tuple[str, ...] = Field(default=("-i",))
    max_lines: int = Field(
        default=DEFAULT_MAX_LINES, ge=1, description="Scrollback size in lines"
    )
    tick_ms: int = Field(default=DEFAULT_TICK_MS, ge=1, description="Redraw period")


class PtyBridgeConfig(BaseModel):
    """Top-level ptybridge configuration."""

    model_config = ConfigDict(frozen=True)

    server: ServerConfig = Field(default_factory=ServerConfig)
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)

    @classmethod
    def load(cls, config_path: str | None = None) -> PtyBridgeConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > .env file > config file > defaults.

        Env vars:
            PTYBRIDGE_SHELL      - Shell executable for both modes
            PTYBRIDGE_BIND       - host:port for ``serve``
            PTYBRIDGE_TOKEN      - Shared secret for ``serve``
            PTYBRIDGE_MAX_LINES  - Scrollback size for ``local``
        """
        # .env fills gaps only; exported variables keep priority
        load_dotenv(find_dotenv(usecwd=True))

        config_data: dict[str, Any] = {}
        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        server = dict(config_data.get("server", {}))
        terminal = dict(config_data.get("terminal", {}))

        env_shell = os.environ.get("PTYBRIDGE_SHELL")
        if env_shell:
            server["shell"] = env_shell
            terminal["shell"] = env_shell

        env_bind = os.environ.get("PTYBRIDGE_BIND")
        if env_bind:
            server["bind"] = env_bind

        env_token = os.environ.get("PTYBRIDGE_TOKEN")
        if env_token:
            server["token"] = env_token

        env_max_lines = os.environ.get("PTYBRIDGE_MAX_LINES")
        if env_max_lines:
            terminal["max_lines"] = int(env_max_lines)

        if server:
            config_data["server"] = server
        if terminal:
            config_data["terminal"] = terminal

        return cls.model_validate(config_data)
