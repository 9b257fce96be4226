"""Local image store: one OCI layout directory per address."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from urllib.parse import quote, unquote

from ..errors import ImageReferenceError, RegistryIOError
from .types import ImageHandle

logger = logging.getLogger(__name__)


class LocalImageStore:
    """Filesystem namespace of locally held images.

    Addresses are arbitrary reference strings; each one is quoted into a
    single directory name under ``root``. The store assumes a single writer
    per address.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()

    def path_for(self, address: str) -> Path:
        value = address.strip()
        if not value or any(char.isspace() for char in value):
            raise ImageReferenceError(f"invalid local address: {address!r}")
        return self.root / quote(value, safe="")

    def exists(self, address: str) -> bool:
        return self.path_for(address).is_dir()

    def addresses(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(unquote(entry.name) for entry in self.root.iterdir() if entry.is_dir())

    def load(self, address: str) -> ImageHandle:
        path = self.path_for(address)
        if not path.is_dir():
            raise RegistryIOError(f"image {address} not found in local store {self.root}")
        return ImageHandle(reference=address.strip(), layout=path)

    def save(self, address: str, image: ImageHandle) -> ImageHandle:
        """Register ``image`` under ``address``, replacing whatever was there."""

        target = self.path_for(address)
        source = Path(image.layout)
        if source.resolve() == target.resolve():
            logger.debug("local image %s already stored at %s", address, target)
            return ImageHandle(reference=address.strip(), layout=target, tag=image.tag, digest=image.digest)
        if not source.is_dir():
            raise RegistryIOError(f"image layout {source} does not exist")

        self.root.mkdir(parents=True, exist_ok=True)
        try:
            if target.exists():
                shutil.rmtree(target)
            if image.transient:
                shutil.move(str(source), str(target))
            else:
                shutil.copytree(source, target)
        except OSError as exc:
            raise RegistryIOError(f"unable to store image {address} at {target}: {exc}") from exc
        logger.debug("stored local image %s at %s", address, target)
        return ImageHandle(reference=address.strip(), layout=target, tag=image.tag, digest=image.digest)

    def remove(self, address: str) -> bool:
        """Delete ``address``; returns False when nothing was stored there."""

        path = self.path_for(address)
        if not path.exists():
            return False
        try:
            shutil.rmtree(path)
        except OSError as exc:
            raise RegistryIOError(f"unable to remove local image {address}: {exc}") from exc
        logger.debug("removed local image %s", address)
        return True
