"""Shared fakes for magina tests: an in-memory registry and a scripted prompt."""

from __future__ import annotations

import tempfile
import threading
import time
from pathlib import Path
from typing import Iterable

import pytest

from magina_core.credentials import Credentials, CredentialStore
from magina_core.errors import RegistryIOError
from magina_core.model import Block
from magina_core.streams import CancelToken, ResultStream
from magina_core.transport import ImageHandle, LocalImageStore, RegistryTransport


class FakeTransport(RegistryTransport):
    """Registry held in a dict of reference -> image content."""

    def __init__(self, staging: Path, remote: dict[str, str] | None = None) -> None:
        self.staging = staging
        self.remote: dict[str, str] = dict(remote or {})
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, str]] = []
        self.auth_seen: list[Credentials | None] = []
        self.block_on: str | None = None
        self.entered = threading.Event()

    def fetch(self, reference, auth, *, cancel: CancelToken | None = None) -> ImageHandle:
        self._enter("fetch", reference, auth, cancel)
        if reference not in self.remote:
            raise RegistryIOError(f"{reference}: manifest unknown")
        self.staging.mkdir(parents=True, exist_ok=True)
        layout = Path(tempfile.mkdtemp(prefix="fetch-", dir=self.staging))
        (layout / "content").write_text(self.remote[reference], encoding="utf-8")
        return ImageHandle(reference=reference, layout=layout, transient=True)

    def store(self, reference, image, auth, *, cancel: CancelToken | None = None) -> str | None:
        self._enter("store", reference, auth, cancel)
        self.remote[reference] = (Path(image.layout) / "content").read_text(encoding="utf-8")
        return None

    def delete(self, reference, auth, *, cancel: CancelToken | None = None) -> None:
        self._enter("delete", reference, auth, cancel)
        self.remote.pop(reference, None)

    def _enter(self, op: str, reference: str, auth, cancel: CancelToken | None) -> None:
        self.calls.append((op, reference))
        self.auth_seen.append(auth)
        if self.block_on == reference and cancel is not None:
            self.entered.set()
            while not cancel.cancelled:
                time.sleep(0.01)
        if cancel is not None:
            cancel.raise_if_cancelled()
        failure = self.failures.get(reference)
        if failure is not None:
            raise failure


class ScriptedPrompt:
    def __init__(self, answers: dict[str, Credentials] | None = None, error: Exception | None = None) -> None:
        self.answers = answers or {}
        self.error = error
        self.asked: list[str] = []

    def __call__(self, host: str) -> Credentials:
        self.asked.append(host)
        if self.error is not None:
            raise self.error
        return self.answers.get(host, Credentials(username="user", password="secret"))


SOURCE = "https://src.example.com"
DESTINATION = "https://dst.example.com"


def make_block(
    mappings: Iterable[tuple[str, str]] = (("library/nginx:1.25", "mirror/nginx:1.25"),),
    *,
    source: str = SOURCE,
    destination: str = DESTINATION,
    exclusions: Iterable[str] = (),
) -> Block:
    return Block.build(source=source, destination=destination, mappings=mappings, exclusions=exclusions)


def collect(stream: ResultStream) -> list:
    with stream:
        return list(stream)


@pytest.fixture
def store(tmp_path: Path) -> LocalImageStore:
    return LocalImageStore(tmp_path / "store")


@pytest.fixture
def transport(tmp_path: Path) -> FakeTransport:
    return FakeTransport(tmp_path / "staging")


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(environ={}, allow_prompt=False)
