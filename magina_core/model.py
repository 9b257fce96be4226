"""Migration units and their per-operation validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .errors import ValidationError

_SCHEMES = ("https://", "http://")


@dataclass(frozen=True)
class Registry:
    host: str = ""
    scheme: str = ""

    @classmethod
    def from_url(cls, url: str) -> "Registry":
        """Normalize ``url`` into a bare host, remembering the protocol if given."""

        value = url.strip()
        scheme = ""
        lowered = value.lower()
        for prefix in _SCHEMES:
            if lowered.startswith(prefix):
                scheme = prefix[:-3]
                value = value[len(prefix):]
                break
        return cls(host=value.strip("/").strip(), scheme=scheme)

    @property
    def configured(self) -> bool:
        return bool(self.host)

    @property
    def url(self) -> str:
        if not self.host:
            return ""
        if self.scheme:
            return f"{self.scheme}://{self.host}"
        return self.host

    @property
    def plain_http(self) -> bool:
        return self.scheme == "http"


@dataclass(frozen=True)
class ImageMapping:
    source: str
    destination: str


@dataclass(frozen=True)
class Block:
    """One migration unit: two registries, ordered mappings and exclusions."""

    source_registry: Registry = field(default_factory=Registry)
    destination_registry: Registry = field(default_factory=Registry)
    image_mappings: tuple[ImageMapping, ...] = ()
    exclusions: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        source: str = "",
        destination: str = "",
        mappings: Iterable[tuple[str, str]] = (),
        exclusions: Iterable[str] = (),
    ) -> "Block":
        return cls(
            source_registry=Registry.from_url(source),
            destination_registry=Registry.from_url(destination),
            image_mappings=tuple(ImageMapping(src, dst) for src, dst in mappings),
            exclusions=frozenset(exclusions),
        )


@dataclass(frozen=True)
class MigrationConfig:
    path: Path
    blocks: tuple[Block, ...]

    def single_block(self, operation: str) -> Block:
        if len(self.blocks) != 1:
            raise ValidationError(
                f"{operation} requires exactly one block in the configuration, found {len(self.blocks)}"
            )
        return self.blocks[0]


def _require_mappings(block: Block) -> None:
    if not block.image_mappings:
        raise ValidationError("no image mappings found")


def _require_block(block: Block | None) -> Block:
    if block is None:
        raise ValidationError("block cannot be empty")
    return block


def validate_for_export(block: Block | None) -> None:
    block = _require_block(block)
    if not block.source_registry.configured:
        raise ValidationError("source registry host cannot be empty")
    _require_mappings(block)


def validate_for_convert(block: Block | None) -> None:
    block = _require_block(block)
    if not block.destination_registry.configured:
        raise ValidationError("destination registry host cannot be empty")
    _require_mappings(block)


def validate_for_import(block: Block | None) -> None:
    block = _require_block(block)
    if not block.destination_registry.configured:
        raise ValidationError("destination registry host cannot be empty")
    _require_mappings(block)


def validate_for_transfer(block: Block | None) -> None:
    block = _require_block(block)
    if not block.source_registry.configured:
        raise ValidationError("source registry host cannot be empty")
    if not block.destination_registry.configured:
        raise ValidationError("destination registry host cannot be empty")
    _require_mappings(block)


def validate_config(config: MigrationConfig) -> Block:
    """Checks run by ``magina validate``; returns the single block on success."""

    block = config.single_block("the configuration")
    if not block.source_registry.configured and not block.destination_registry.configured:
        raise ValidationError("at least one of the source or destination registry must be set")
    for label, registry in (
        ("source", block.source_registry),
        ("destination", block.destination_registry),
    ):
        if registry.configured and not registry.scheme:
            raise ValidationError(
                f"the {label} registry URL must specify the protocol (http:// or https://)"
            )
    return block
