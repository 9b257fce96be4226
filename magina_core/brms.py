"""Parser for BRMS migration files.

A BRMS file is a sequence of blocks. Each block opens with a
``[source|destination]`` header and is followed by mapping lines
(``source-ref|destination-ref``) and exclusion lines (``!pattern``)::

    # mirror nginx, skip the old tag
    [https://registry-1.docker.io|https://harbor.local]
    library/nginx:1.25|mirror/nginx:1.25
    library/redis:7
    !nginx:1.24
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError
from .model import Block, ImageMapping, MigrationConfig, Registry

logger = logging.getLogger(__name__)

EXCLUSION_MARKER = "!"
COMMENT_MARKER = "#"
SEPARATOR = "|"


@dataclass
class _PendingBlock:
    source: Registry
    destination: Registry
    mappings: list[ImageMapping] = field(default_factory=list)
    exclusions: set[str] = field(default_factory=set)

    def freeze(self) -> Block:
        return Block(
            source_registry=self.source,
            destination_registry=self.destination,
            image_mappings=tuple(self.mappings),
            exclusions=frozenset(self.exclusions),
        )


def parse_config(path: str | Path) -> MigrationConfig:
    """Read and parse the BRMS file at ``path``."""

    config_path = Path(path).expanduser().resolve()
    try:
        text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"unable to read configuration at {config_path}: {exc}") from exc
    blocks = parse_text(text, source=str(config_path))
    logger.debug("parsed %s block(s) from %s", len(blocks), config_path)
    return MigrationConfig(path=config_path, blocks=blocks)


def parse_text(text: str, *, source: str = "<string>") -> tuple[Block, ...]:
    blocks: list[Block] = []
    current: _PendingBlock | None = None

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_MARKER):
            continue

        if line.startswith("["):
            if current is not None:
                blocks.append(current.freeze())
            current = _parse_header(line, source=source, lineno=lineno)
            continue

        if current is None:
            raise ConfigError(f"{source}:{lineno}: entry found before any [source|destination] header")

        if line.startswith(EXCLUSION_MARKER):
            pattern = line[len(EXCLUSION_MARKER):].strip()
            if not pattern:
                raise ConfigError(f"{source}:{lineno}: empty exclusion pattern")
            current.exclusions.add(pattern)
            continue

        current.mappings.append(_parse_mapping(line, source=source, lineno=lineno))

    if current is not None:
        blocks.append(current.freeze())
    return tuple(blocks)


def _parse_header(line: str, *, source: str, lineno: int) -> _PendingBlock:
    if not line.endswith("]"):
        raise ConfigError(f"{source}:{lineno}: unterminated block header {line!r}")
    body = line[1:-1]
    if body.count(SEPARATOR) != 1:
        raise ConfigError(
            f"{source}:{lineno}: block header must have the form [source|destination], got {line!r}"
        )
    source_url, destination_url = body.split(SEPARATOR, 1)
    return _PendingBlock(
        source=Registry.from_url(source_url),
        destination=Registry.from_url(destination_url),
    )


def _parse_mapping(line: str, *, source: str, lineno: int) -> ImageMapping:
    if SEPARATOR not in line:
        if any(char.isspace() for char in line):
            raise ConfigError(f"{source}:{lineno}: invalid image reference {line!r}")
        return ImageMapping(source=line, destination=line)

    if line.count(SEPARATOR) != 1:
        raise ConfigError(f"{source}:{lineno}: mapping must have the form source|destination, got {line!r}")
    left, right = (part.strip() for part in line.split(SEPARATOR, 1))
    if not left or not right:
        raise ConfigError(f"{source}:{lineno}: mapping has an empty reference: {line!r}")
    return ImageMapping(source=left, destination=right)
