"""Tests for the block model and per-operation validation."""

from pathlib import Path

import pytest

from magina_core.errors import ValidationError
from magina_core.model import (
    Block,
    MigrationConfig,
    Registry,
    validate_config,
    validate_for_convert,
    validate_for_export,
    validate_for_import,
    validate_for_transfer,
)


def test_registry_from_url_strips_protocol_and_slashes() -> None:
    registry = Registry.from_url(" HTTPS://registry.example.com:5000/ ")
    assert registry.host == "registry.example.com:5000"
    assert registry.scheme == "https"
    assert registry.url == "https://registry.example.com:5000"
    assert not registry.plain_http


def test_registry_without_protocol_keeps_empty_scheme() -> None:
    registry = Registry.from_url("harbor.local")
    assert registry.host == "harbor.local"
    assert registry.scheme == ""
    assert Registry.from_url("http://localhost:5000").plain_http


def test_export_requires_source_host() -> None:
    block = Block.build(destination="https://dst", mappings=[("a:1", "b:1")])
    with pytest.raises(ValidationError, match="source registry host cannot be empty"):
        validate_for_export(block)
    validate_for_convert(block)
    validate_for_import(block)


def test_convert_and_import_require_destination_host() -> None:
    block = Block.build(source="https://r1/", mappings=[("a:1", "b:1")])
    validate_for_export(block)
    for check in (validate_for_convert, validate_for_import):
        with pytest.raises(ValidationError, match="destination registry host cannot be empty"):
            check(block)


def test_every_operation_requires_mappings() -> None:
    block = Block.build(source="https://r1", destination="https://r2")
    for check in (validate_for_export, validate_for_convert, validate_for_import, validate_for_transfer):
        with pytest.raises(ValidationError, match="no image mappings found"):
            check(block)


def test_validate_config_rejects_multiple_blocks() -> None:
    block = Block.build(source="https://r1", mappings=[("a:1", "a:1")])
    config = MigrationConfig(path=Path("m.brms"), blocks=(block, block))
    with pytest.raises(ValidationError, match="exactly one block"):
        validate_config(config)


def test_validate_config_requires_protocol() -> None:
    block = Block.build(source="r1.example.com", destination="https://r2", mappings=[("a:1", "a:1")])
    config = MigrationConfig(path=Path("m.brms"), blocks=(block,))
    with pytest.raises(ValidationError, match="source registry URL must specify the protocol"):
        validate_config(config)


def test_validate_config_is_repeatable() -> None:
    block = Block.build(source="https://r1", mappings=[("a:1", "a:1")])
    config = MigrationConfig(path=Path("m.brms"), blocks=(block,))
    assert validate_config(config) == validate_config(config) == block


def test_validate_config_requires_a_registry() -> None:
    config = MigrationConfig(path=Path("m.brms"), blocks=(Block.build(mappings=[("a:1", "a:1")]),))
    with pytest.raises(ValidationError, match="at least one"):
        validate_config(config)
