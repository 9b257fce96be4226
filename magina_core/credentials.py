"""Per-registry credential resolution with an in-process cache."""

from __future__ import annotations

import base64
import logging
import os
import sys
import threading
from dataclasses import dataclass, field
from functools import cached_property
from typing import Callable, Mapping

import typer

from .errors import CredentialError

logger = logging.getLogger(__name__)

USERNAME_SUFFIX = "_USERNAME"
PASSWORD_SUFFIX = "_PASSWORD"


@dataclass(frozen=True)
class Credentials:
    username: str = ""
    password: str = field(default="", repr=False)

    @cached_property
    def encoded_auth(self) -> str:
        if self.anonymous:
            return ""
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")

    @property
    def anonymous(self) -> bool:
        return not self.username and not self.password


ANONYMOUS = Credentials()

CredentialPrompt = Callable[[str], Credentials]


def _bare_host(host: str) -> str:
    value = host.strip()
    for scheme in ("https://", "http://"):
        if value.lower().startswith(scheme):
            return value[len(scheme):]
    return value


def env_prefix_for(host: str) -> str:
    """Map a registry host to the shell-safe prefix of its credential variables.

    ``https://registry-1.example.com:5000`` becomes
    ``REGISTRY_1_EXAMPLE_COM_5000``.
    """

    value = _bare_host(host).upper()
    for char in (".", "/", "-", ":"):
        value = value.replace(char, "_")
    return value


def env_prefixes_for(host: str) -> list[str]:
    """Prefixes looked up for ``host``, in order.

    The first keeps a port separator as is (``LOCALHOST:5000``); such names
    can only be set through ``env`` or a process launcher. The second is
    :func:`env_prefix_for`.
    """

    raw = _bare_host(host).upper()
    for char in (".", "/", "-"):
        raw = raw.replace(char, "_")
    normalized = env_prefix_for(host)
    return [raw] if raw == normalized else [raw, normalized]


class TerminalPrompt:
    """Ask for a username and a masked password on the controlling terminal."""

    def __init__(self, *, require_tty: bool = True) -> None:
        self.require_tty = require_tty

    def __call__(self, host: str) -> Credentials:
        if self.require_tty and not sys.stdin.isatty():
            names = " or ".join(
                f"{prefix}{USERNAME_SUFFIX} and {prefix}{PASSWORD_SUFFIX}" for prefix in env_prefixes_for(host)
            )
            raise CredentialError(
                f"credentials for {host} are required but the terminal is not interactive; set {names}"
            )
        typer.echo(f"Authentication required for {host}", err=True)
        try:
            username = typer.prompt("Username", default="", show_default=False, err=True)
            password = typer.prompt("Password", default="", hide_input=True, show_default=False, err=True)
        except typer.Abort as exc:
            raise CredentialError(f"unable to read credentials for {host}") from exc
        return Credentials(username=username.strip(), password=password.strip())


class CredentialStore:
    """Resolve credentials per host: cache, then environment, then prompt.

    Resolved credentials are cached for the lifetime of the store and never
    expire. Lookups are short and stages resolve hosts one at a time, so a
    plain lock guards the cache rather than a reader-writer lock. Two callers
    asking for the same uncached host at once may both resolve it.
    """

    def __init__(
        self,
        *,
        environ: Mapping[str, str] | None = None,
        prompt: CredentialPrompt | None = None,
        allow_prompt: bool = True,
    ) -> None:
        self._environ = environ if environ is not None else os.environ
        self._prompt = prompt or TerminalPrompt()
        self.allow_prompt = allow_prompt
        self._cache: dict[str, Credentials] = {}
        self._lock = threading.Lock()

    def resolve(self, host: str) -> Credentials:
        with self._lock:
            cached = self._cache.get(host)
        if cached is not None:
            return cached

        credentials = self._from_environment(host)
        if credentials is None:
            credentials = self._ask(host)

        with self._lock:
            self._cache[host] = credentials
        return credentials

    def clear(self) -> None:
        with self._lock:
            self._cache = {}

    def cached_hosts(self) -> list[str]:
        with self._lock:
            return sorted(self._cache)

    def _from_environment(self, host: str) -> Credentials | None:
        partial: str | None = None
        for prefix in env_prefixes_for(host):
            username = self._environ.get(prefix + USERNAME_SUFFIX, "")
            password = self._environ.get(prefix + PASSWORD_SUFFIX, "")
            if username and password:
                logger.debug("using credentials from %s%s for %s", prefix, USERNAME_SUFFIX, host)
                return Credentials(username=username, password=password)
            if (username or password) and partial is None:
                partial = prefix
        if partial is not None and not self.allow_prompt:
            raise CredentialError(
                f"incomplete credentials for {host}: set both {partial}{USERNAME_SUFFIX} and {partial}{PASSWORD_SUFFIX}"
            )
        return None

    def _ask(self, host: str) -> Credentials:
        if not self.allow_prompt:
            logger.debug("no credentials for %s, using anonymous access", host)
            return ANONYMOUS
        return self._prompt(host)
