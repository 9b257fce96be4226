"""Registry reachability checks against the distribution ``/v2/`` endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from ..credentials import Credentials
from ..errors import RegistryAuthError, RegistryConnectionError, RegistryIOError
from ..model import Registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PingResult:
    url: str
    status_code: int
    authenticated: bool


def _api_root(registry: Registry) -> str:
    scheme = registry.scheme or "https"
    return f"{scheme}://{registry.host}/v2/"


def ping_registry(
    registry: Registry,
    credentials: Credentials | None = None,
    *,
    timeout: float = 10.0,
    verify: bool = True,
) -> PingResult:
    """Check that ``registry`` answers and accepts ``credentials``.

    A 401 carrying a Bearer challenge still counts as reachable: token
    registries only validate credentials at the token endpoint, which is
    the transport's business.
    """

    url = _api_root(registry)
    headers: dict[str, str] = {}
    if credentials is not None and not credentials.anonymous:
        headers["Authorization"] = f"Basic {credentials.encoded_auth}"
    try:
        response = requests.get(url, headers=headers, timeout=timeout, verify=verify)
    except (requests.ConnectionError, requests.Timeout) as exc:
        raise RegistryConnectionError(f"unable to reach {url}: {exc}") from exc
    except requests.RequestException as exc:
        raise RegistryIOError(f"request to {url} failed: {exc}") from exc

    status = response.status_code
    logger.debug("ping %s status=%s", url, status)
    if status >= 500:
        raise RegistryIOError(f"{url} answered with HTTP {status}")
    if status in (401, 403):
        challenge = response.headers.get("WWW-Authenticate", "")
        if challenge.lower().startswith("bearer"):
            return PingResult(url=url, status_code=status, authenticated=False)
        if headers or status == 403:
            raise RegistryAuthError(f"{url} rejected the supplied credentials (HTTP {status})")
        return PingResult(url=url, status_code=status, authenticated=False)
    return PingResult(url=url, status_code=status, authenticated=bool(headers))
