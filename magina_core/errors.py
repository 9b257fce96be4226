"""Typed magina errors."""

from __future__ import annotations


class MaginaError(RuntimeError):
    """Base magina error."""


class ConfigError(MaginaError):
    """Configuration file is unreadable or malformed."""


class ValidationError(MaginaError):
    """A block does not satisfy the preconditions of the operation run on it."""


class CredentialError(MaginaError):
    """Credentials for a registry host could not be resolved."""


class ImageReferenceError(MaginaError):
    """Malformed image reference or local address."""


class RegistryIOError(MaginaError):
    """Pull, push, load or store of an image failed."""


class RegistryConnectionError(RegistryIOError):
    """The registry could not be reached."""


class RegistryAuthError(RegistryIOError):
    """The registry rejected the supplied credentials."""


class OperationCancelledError(MaginaError):
    """The operation was cancelled or its deadline expired."""


class CleanupError(MaginaError):
    """Best-effort cleanup after a failure did not succeed."""
