"""User settings: transport and local store options read from TOML."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

import tomllib

from .errors import ConfigError
from .model import Block
from .paths import UserDirs
from .transport.types import TransportConfig

logger = logging.getLogger(__name__)

ENV_SETTINGS = "MAGINA_SETTINGS"
ENV_STORE_DIR = "MAGINA_STORE_DIR"
ENV_ORAS_BIN = "MAGINA_ORAS_BIN"


@dataclass(frozen=True)
class Settings:
    store_root: Path
    transport: TransportConfig = field(default_factory=TransportConfig)
    source: Path | None = None

    def with_block(self, block: Block) -> "Settings":
        """Add the hosts of plain ``http://`` registries in ``block`` to the transport."""

        hosts = _plain_http_hosts(block)
        if not hosts:
            return self
        merged = tuple(dict.fromkeys((*self.transport.plain_http_hosts, *hosts)))
        return replace(self, transport=replace(self.transport, plain_http_hosts=merged))


def _plain_http_hosts(block: Block) -> list[str]:
    return [
        registry.host.lower()
        for registry in (block.source_registry, block.destination_registry)
        if registry.configured and registry.plain_http
    ]


def load_settings(
    path: Path | str | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    user_dirs: UserDirs | None = None,
) -> Settings:
    """Read settings from ``path``, ``$MAGINA_SETTINGS`` or the user config dir.

    The default file is optional; an explicit path that does not exist is an
    error. Environment variables override file values.
    """

    env = environ if environ is not None else os.environ
    dirs = user_dirs or UserDirs()

    explicit = path or env.get(ENV_SETTINGS)
    settings_path = Path(explicit).expanduser() if explicit else dirs.settings_file()
    data: dict[str, Any] = {}
    if settings_path.exists():
        data = _read_toml(settings_path)
    elif explicit:
        raise ConfigError(f"settings file not found: {settings_path}")

    transport_data = _section(data, "transport", settings_path)
    store_data = _section(data, "store", settings_path)

    oras_bin = env.get(ENV_ORAS_BIN) or str(transport_data.get("oras_bin", "oras"))
    transport = TransportConfig(
        oras_bin=oras_bin,
        timeout_seconds=_as_float(transport_data.get("timeout_seconds", 600), "transport.timeout_seconds"),
        insecure=bool(transport_data.get("insecure", False)),
        plain_http_hosts=_as_hosts(transport_data.get("plain_http_hosts", ())),
        staging_dir=dirs.staging_dir(),
    )
    store_root = env.get(ENV_STORE_DIR) or store_data.get("root")
    root = Path(str(store_root)).expanduser() if store_root else dirs.store_dir()
    logger.debug("settings loaded from %s store=%s", settings_path if data else "defaults", root)
    return Settings(store_root=root, transport=transport, source=settings_path if data else None)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"malformed settings file {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"unable to read settings file {path}: {exc}") from exc


def _section(data: Mapping[str, Any], name: str, path: Path) -> Mapping[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] in {path} must be a table")
    return value


def _as_float(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be positive")
    return number


def _as_hosts(value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, Iterable):
        raise ConfigError("transport.plain_http_hosts must be a list of hosts")
    return tuple(str(item).strip().lower() for item in value if str(item).strip())
