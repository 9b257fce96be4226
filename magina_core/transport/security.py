"""Redaction helpers for transport command logging."""

from __future__ import annotations

from urllib.parse import urlsplit

_SECRET_FLAGS = {
    "--password",
    "--from-password",
    "--to-password",
    "--token",
}
_SENSITIVE_KEYS = ("authorization", "bearer")


def redact_command_for_log(command: list[str]) -> list[str]:
    redacted: list[str] = []
    skip_next = False
    for item in command:
        lower = item.lower()
        if skip_next:
            redacted.append("***")
            skip_next = False
            continue
        if lower in _SECRET_FLAGS:
            redacted.append(item)
            skip_next = True
            continue
        if any(key in lower for key in _SENSITIVE_KEYS):
            redacted.append("***")
            continue
        if "://" in item:
            parsed = urlsplit(item)
            if parsed.password:
                safe_netloc = parsed.netloc.replace(parsed.password, "***")
                redacted.append(item.replace(parsed.netloc, safe_netloc))
                continue
        redacted.append(item)
    return redacted
