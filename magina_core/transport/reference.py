"""Image reference checks and registry qualification."""

from __future__ import annotations

import re

from ..errors import ImageReferenceError

# name components, optional :tag, optional @digest; the registry host may carry a port
_REFERENCE_RE = re.compile(
    r"^(?P<name>[A-Za-z0-9][A-Za-z0-9._\-]*(?::[0-9]+(?=/))?(?:/[A-Za-z0-9._\-]+)*)"
    r"(?::(?P<tag>[A-Za-z0-9_][A-Za-z0-9._\-]{0,127}))?"
    r"(?:@(?P<digest>[A-Za-z0-9_+.\-]+:[A-Fa-f0-9]{32,}))?$"
)


def host_from_ref(ref: str) -> str:
    """Registry host of ``ref``, or an empty string for unqualified references."""

    value = ref.strip()
    if not value:
        raise ImageReferenceError("empty image reference")
    if "/" not in value:
        return ""
    first = value.split("/", 1)[0]
    if "." in first or ":" in first or first == "localhost":
        return first.lower()
    return ""


def qualify(host: str, ref: str) -> str:
    """Prefix ``ref`` with ``host`` unless it already names a registry."""

    value = ref.strip()
    if host_from_ref(value) or not host:
        return value
    return f"{host.strip('/')}/{value}"


def parse_reference(ref: str) -> str:
    value = ref.strip()
    if not value:
        raise ImageReferenceError("empty image reference")
    match = _REFERENCE_RE.match(value)
    if not match or "//" in value:
        raise ImageReferenceError(f"invalid image reference: {ref!r}")
    if not match.group("tag") and not match.group("digest"):
        raise ImageReferenceError(f"image reference must carry a tag or digest: {ref!r}")
    return value
