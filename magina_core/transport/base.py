"""Abstract registry transport."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..credentials import Credentials
from ..streams import CancelToken
from .types import ImageHandle


class RegistryTransport(ABC):
    """Moves images between remote registries and local OCI layouts."""

    @abstractmethod
    def fetch(
        self,
        reference: str,
        auth: Credentials | None,
        *,
        cancel: CancelToken | None = None,
    ) -> ImageHandle:
        """Pull ``reference`` into a transient local layout."""

    @abstractmethod
    def store(
        self,
        reference: str,
        image: ImageHandle,
        auth: Credentials | None,
        *,
        cancel: CancelToken | None = None,
    ) -> str | None:
        """Push ``image`` to ``reference``; returns the pushed digest when known."""

    @abstractmethod
    def delete(
        self,
        reference: str,
        auth: Credentials | None,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        """Remove ``reference`` from its registry."""
