"""Core runtime for magina, the OCI image migration tool."""

from .app import MaginaApp
from .brms import parse_config, parse_text
from .credentials import Credentials, CredentialStore, env_prefix_for, env_prefixes_for
from .errors import (
    CleanupError,
    ConfigError,
    CredentialError,
    ImageReferenceError,
    MaginaError,
    OperationCancelledError,
    RegistryAuthError,
    RegistryConnectionError,
    RegistryIOError,
    ValidationError,
)
from .events import Event, EventBus
from .model import Block, ImageMapping, MigrationConfig, Registry
from .orchestrator import TransferOptions, TransferOrchestrator, TransferState
from .results import Phase, StageResult, TransferResult
from .settings import Settings, load_settings
from .streams import CancelToken, ResultStream

__version__ = "0.4.0"

__all__ = [
    "Block",
    "CancelToken",
    "CleanupError",
    "ConfigError",
    "CredentialError",
    "CredentialStore",
    "Credentials",
    "Event",
    "EventBus",
    "ImageMapping",
    "ImageReferenceError",
    "MaginaApp",
    "MaginaError",
    "MigrationConfig",
    "OperationCancelledError",
    "Phase",
    "Registry",
    "RegistryAuthError",
    "RegistryConnectionError",
    "RegistryIOError",
    "ResultStream",
    "Settings",
    "StageResult",
    "TransferOptions",
    "TransferOrchestrator",
    "TransferResult",
    "TransferState",
    "ValidationError",
    "__version__",
    "env_prefix_for",
    "env_prefixes_for",
    "load_settings",
    "parse_config",
    "parse_text",
]
