"""Transport datatypes and configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

LAYOUT_TAG = "current"


@dataclass(frozen=True)
class TransportConfig:
    oras_bin: str = "oras"
    timeout_seconds: float = 600.0
    insecure: bool = False
    plain_http_hosts: tuple[str, ...] = ()
    staging_dir: Path | None = None


@dataclass(frozen=True)
class ImageHandle:
    """An image held in an OCI layout directory on local disk."""

    reference: str
    layout: Path
    tag: str = LAYOUT_TAG
    digest: str | None = None
    transient: bool = False

    @property
    def layout_ref(self) -> str:
        return f"{self.layout}:{self.tag}"
