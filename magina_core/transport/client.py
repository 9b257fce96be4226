"""Registry transport built on top of the ORAS CLI."""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import tempfile
import time
from pathlib import Path

from ..credentials import Credentials
from ..errors import (
    OperationCancelledError,
    RegistryAuthError,
    RegistryConnectionError,
    RegistryIOError,
)
from ..streams import CancelToken
from .base import RegistryTransport
from .reference import host_from_ref, parse_reference
from .security import redact_command_for_log
from .types import LAYOUT_TAG, ImageHandle, TransportConfig

logger = logging.getLogger(__name__)
_DIGEST_RE = re.compile(r"sha256:[a-f0-9]{64}")
_POLL_SECONDS = 0.1

_AUTH_MARKERS = ("unauthorized", "authentication required", "denied", "401", "403")
_CONNECTION_MARKERS = (
    "connection refused",
    "no such host",
    "i/o timeout",
    "dial tcp",
    "tls handshake",
    "network is unreachable",
)


class OrasTransport(RegistryTransport):
    """Thin ORAS CLI wrapper: one ``oras`` process per operation, no retries."""

    def __init__(self, config: TransportConfig | None = None) -> None:
        self.config = config or TransportConfig()

    def fetch(
        self,
        reference: str,
        auth: Credentials | None,
        *,
        cancel: CancelToken | None = None,
    ) -> ImageHandle:
        ref = parse_reference(reference)
        staging_root = self.config.staging_dir
        if staging_root is not None:
            staging_root.mkdir(parents=True, exist_ok=True)
        layout = Path(tempfile.mkdtemp(prefix="magina-fetch-", dir=staging_root))
        command = [self.config.oras_bin, "cp", ref, "--to-oci-layout", f"{layout}:{LAYOUT_TAG}"]
        command += self._remote_flags(ref, auth, prefix="--from-")
        try:
            result = self._run(command, cancel=cancel)
        except BaseException:
            shutil.rmtree(layout, ignore_errors=True)
            raise
        digest = _extract_digest(result.stdout) or _extract_digest(result.stderr)
        logger.info("fetched %s digest=%s", ref, digest or "unknown")
        return ImageHandle(reference=ref, layout=layout, digest=digest, transient=True)

    def store(
        self,
        reference: str,
        image: ImageHandle,
        auth: Credentials | None,
        *,
        cancel: CancelToken | None = None,
    ) -> str | None:
        ref = parse_reference(reference)
        command = [self.config.oras_bin, "cp", "--from-oci-layout", image.layout_ref, ref]
        command += self._remote_flags(ref, auth, prefix="--to-")
        result = self._run(command, cancel=cancel)
        digest = _extract_digest(result.stdout) or _extract_digest(result.stderr)
        logger.info("pushed %s digest=%s", ref, digest or "unknown")
        return digest

    def delete(
        self,
        reference: str,
        auth: Credentials | None,
        *,
        cancel: CancelToken | None = None,
    ) -> None:
        ref = parse_reference(reference)
        command = [self.config.oras_bin, "manifest", "delete", "--force", ref]
        command += self._remote_flags(ref, auth, prefix="--")
        self._run(command, cancel=cancel)
        logger.info("deleted %s", ref)

    def _remote_flags(self, ref: str, auth: Credentials | None, *, prefix: str) -> list[str]:
        flags: list[str] = []
        host = host_from_ref(ref)
        if host and host in self.config.plain_http_hosts:
            flags.append(f"{prefix}plain-http")
        elif self.config.insecure:
            flags.append(f"{prefix}insecure")
        if auth is not None and not auth.anonymous:
            flags += [f"{prefix}username", auth.username, f"{prefix}password", auth.password]
        return flags

    def _run(self, command: list[str], *, cancel: CancelToken | None) -> subprocess.CompletedProcess[str]:
        if cancel is not None:
            cancel.raise_if_cancelled()
        timeout = max(float(self.config.timeout_seconds), 1.0)
        if cancel is not None and cancel.remaining() is not None:
            timeout = min(timeout, cancel.remaining() or 0.0)
        redacted = " ".join(redact_command_for_log(command))
        logger.debug("oras command cmd=%s", redacted)

        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as exc:
            raise RegistryIOError(
                f"{self.config.oras_bin} not found. Install ORAS and ensure it is available in PATH."
            ) from exc

        deadline = time.monotonic() + timeout
        while True:
            try:
                stdout, stderr = process.communicate(timeout=_POLL_SECONDS)
                break
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.cancelled:
                    _terminate(process)
                    raise OperationCancelledError(f"{cancel.reason}: {redacted}")
                if time.monotonic() >= deadline:
                    _terminate(process)
                    raise RegistryIOError(f"oras command timed out after {timeout:.1f}s cmd='{redacted}'")

        result = subprocess.CompletedProcess(command, process.returncode, stdout, stderr)
        if result.returncode != 0:
            raise _classify_failure(redacted, result.returncode, stderr)
        return result


def _terminate(process: subprocess.Popen[str]) -> None:
    process.kill()
    try:
        process.communicate(timeout=5)
    except subprocess.TimeoutExpired:
        logger.warning("oras process %s did not exit after kill", process.pid)


def _extract_digest(text: str | None) -> str | None:
    if not text:
        return None
    match = _DIGEST_RE.search(text)
    if not match:
        return None
    return match.group(0)


def _classify_failure(redacted: str, code: int, stderr: str | None) -> RegistryIOError:
    detail = (stderr or "").strip()
    message = f"oras command failed (exit={code}) cmd='{redacted}'"
    if detail:
        message = f"{message} err='{detail}'"
    lowered = detail.lower()
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return RegistryAuthError(message)
    if any(marker in lowered for marker in _CONNECTION_MARKERS):
        return RegistryConnectionError(message)
    return RegistryIOError(message)
