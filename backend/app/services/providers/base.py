"""Common contract and HTTP plumbing for booking provider adapters."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from app.config import settings
from app.exceptions import ProviderError
from app.schemas.booking import BookingRequest, BookingResult
from app.services.credential_resolver import ResolvedCredential

logger = logging.getLogger(__name__)


def extract_error_detail(body: str, default: str) -> str:
    """Pull a readable message out of a provider error envelope ({"errors": [...]})."""
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return default
    errors = data.get("errors") if isinstance(data, dict) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], dict):
        first = errors[0]
        return first.get("detail") or first.get("message") or first.get("title") or default
    return default


def parse_amount(value: Any, provider: str, reference: str) -> float:
    """Provider-reported price as a float; 0.0 when absent or unparseable.

    Runs after the order exists on the provider side and never raises.
    """
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"{provider} order {reference} has unparseable total {value!r}")
        return 0.0


class ProviderAdapter(ABC):
    """Books an order with one external provider.

    Adapters never retry. Any non-2xx response, timeout or transport failure
    is raised as ProviderError for that attempt.
    """

    name: str = ""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=settings.provider_timeout_seconds,
                transport=self._transport,
            )
        return self._client

    @abstractmethod
    async def book(self, credential: ResolvedCredential, request: BookingRequest) -> BookingResult:
        ...

    async def _send(self, method: str, url: str, failure: str, **kwargs: Any) -> dict:
        """Issue one request and return the decoded JSON body, or raise ProviderError."""
        client = await self._get_client()
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.TimeoutException:
            logger.error(f"{self.name} request timed out: {method} {url}")
            raise ProviderError(self.name, f"{failure}: provider timed out")
        except httpx.RequestError as e:
            logger.error(f"{self.name} request error: {e}")
            raise ProviderError(self.name, f"{failure}: provider unreachable")

        if not resp.is_success:
            detail = extract_error_detail(resp.text, failure)
            logger.error(f"{self.name} error {resp.status_code}: {detail}")
            raise ProviderError(self.name, detail)

        try:
            return resp.json()
        except ValueError:
            raise ProviderError(self.name, f"{failure}: malformed provider response")

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None
