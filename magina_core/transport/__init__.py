"""Registry transport and local image storage."""

from .base import RegistryTransport
from .client import OrasTransport
from .ping import PingResult, ping_registry
from .reference import host_from_ref, parse_reference, qualify
from .security import redact_command_for_log
from .store import LocalImageStore
from .types import LAYOUT_TAG, ImageHandle, TransportConfig

__all__ = [
    "ImageHandle",
    "LAYOUT_TAG",
    "LocalImageStore",
    "OrasTransport",
    "PingResult",
    "RegistryTransport",
    "TransportConfig",
    "host_from_ref",
    "parse_reference",
    "ping_registry",
    "qualify",
    "redact_command_for_log",
]
