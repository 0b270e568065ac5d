"""Minimal synchronous HTTP contract used by the online billing adapters."""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Mapping, Optional

import httpx

from szamla.domain.errors import ExternalBackendError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass(frozen=True)
class HttpResponse:
    """Status code, headers and raw body of a vendor response."""

    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    content: bytes = b""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


class HttpClient(ABC):
    """Blocking HTTP client.

    Implementations raise ExternalBackendError when no response could be
    obtained at all (connection refused, timeout). Any HTTP status,
    including 4xx and 5xx, is returned as a response.
    """

    @abstractmethod
    def post(self, url: str, headers: Mapping[str, str], body: bytes) -> HttpResponse:
        pass

    @abstractmethod
    def get(self, url: str, headers: Mapping[str, str], params: Optional[Mapping[str, str]] = None) -> HttpResponse:
        pass


def timeout_from_env() -> float:
    """Read the vendor call timeout in seconds from SZAMLA_HTTP_TIMEOUT."""
    value = os.environ.get("SZAMLA_HTTP_TIMEOUT")
    if not value:
        return DEFAULT_TIMEOUT
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring invalid SZAMLA_HTTP_TIMEOUT=%r, using %ss", value, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT


class HttpxClient(HttpClient):
    """HttpClient backed by ``httpx.Client``."""

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        """Initialize httpx client.

        Args:
            timeout: Seconds to wait for a vendor; defaults to SZAMLA_HTTP_TIMEOUT or 30
            transport: Optional transport (tests pass ``httpx.MockTransport``)
        """
        self.client = httpx.Client(
            timeout=timeout if timeout is not None else timeout_from_env(),
            transport=transport,
        )

    def post(self, url: str, headers: Mapping[str, str], body: bytes) -> HttpResponse:
        return self._send("POST", url, headers=dict(headers), content=body)

    def get(self, url: str, headers: Mapping[str, str], params: Optional[Mapping[str, str]] = None) -> HttpResponse:
        return self._send("GET", url, headers=dict(headers), params=dict(params) if params else None)

    def _send(self, method: str, url: str, **kwargs) -> HttpResponse:
        logger.debug("%s %s", method, url)
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise ExternalBackendError(f"Request to {url} timed out", detail=str(e)) from e
        except httpx.HTTPError as e:
            raise ExternalBackendError(f"Request to {url} failed: {e}", detail=str(e)) from e
        logger.debug("%s %s -> %s", method, url, response.status_code)
        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            content=response.content,
        )

    def close(self) -> None:
        self.client.close()
