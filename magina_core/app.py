"""Application object that wires magina's services together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .brms import parse_config
from .credentials import CredentialPrompt, CredentialStore
from .events import EventBus
from .model import Block, MigrationConfig
from .orchestrator import TransferOptions, TransferOrchestrator
from .results import Phase
from .settings import Settings, load_settings
from .stages import STAGE_TYPES, Stage, StageOptions
from .transport import LocalImageStore, OrasTransport, RegistryTransport


@dataclass(frozen=True)
class MaginaAppStatus:
    settings_file: str
    store_root: str
    oras_bin: str
    cached_hosts: tuple[str, ...]


class MaginaApp:
    """Entry point shared by the CLI and library callers.

    A transport passed in is used for every block as is; otherwise an
    ``OrasTransport`` is built per block so that plain ``http://``
    registries of that block are reached without TLS.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        settings_path: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
        transport: RegistryTransport | None = None,
        prompt: CredentialPrompt | None = None,
        allow_prompt: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger("magina_core.app")
        self.settings = settings or load_settings(settings_path, environ=environ)
        self.store = LocalImageStore(self.settings.store_root)
        self.credentials = CredentialStore(environ=environ, prompt=prompt, allow_prompt=allow_prompt)
        self.events = EventBus()
        self._transport = transport

    def load_config(self, path: Path | str) -> MigrationConfig:
        return parse_config(path)

    def transport_for(self, block: Block) -> RegistryTransport:
        if self._transport is not None:
            return self._transport
        config = self.settings.with_block(block).transport
        self.logger.debug("using oras transport bin=%s plain_http=%s", config.oras_bin, config.plain_http_hosts)
        return OrasTransport(config)

    def stage(self, phase: Phase, block: Block, options: StageOptions | None = None) -> Stage:
        return STAGE_TYPES[phase](
            store=self.store,
            transport=self.transport_for(block),
            credentials=self.credentials,
            options=options,
        )

    def orchestrator(self, block: Block, options: TransferOptions | None = None) -> TransferOrchestrator:
        return TransferOrchestrator(
            store=self.store,
            transport=self.transport_for(block),
            credentials=self.credentials,
            events=self.events,
            options=options,
        )

    def status(self) -> MaginaAppStatus:
        source = self.settings.source
        return MaginaAppStatus(
            settings_file=str(source) if source else "defaults",
            store_root=str(self.store.root),
            oras_bin=self.settings.transport.oras_bin,
            cached_hosts=tuple(self.credentials.cached_hosts()),
        )
