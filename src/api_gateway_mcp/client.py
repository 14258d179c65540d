"""HTTP client used to forward tool calls to upstream APIs."""

from typing import Any, Dict, Mapping, Optional

import httpx
import structlog

from .errors import UpstreamError

logger = structlog.get_logger(__name__)


class UpstreamClient:
    """Asynchronous client shared by all registered APIs.

    No ``base_url`` is bound to the underlying :class:`httpx.AsyncClient`;
    every call passes the absolute URL built by the dispatcher.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout
        self.client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _ensure_client(self):
        if not self.client:
            self.client = httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=True
            )

    async def aclose(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def request(
        self,
        method: str,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Send one request and return the decoded response body.

        JSON bodies are decoded; anything else is returned as text. Failures
        raise :class:`UpstreamError`.
        """
        await self._ensure_client()

        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = await self.client.request(
                method=method,
                url=url,
                params=params or None,
                json=json,
                headers=headers,
                **kwargs,
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.error("Request error", method=method, url=url, error=str(e))
            raise UpstreamError(str(e) or type(e).__name__)

        logger.info(
            "API request",
            method=method,
            url=url,
            status_code=response.status_code,
        )

        if not response.is_success:
            raise UpstreamError(
                _error_message(response), status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError:
            return response.text


def _error_message(response: httpx.Response) -> str:
    """Prefer the upstream ``message`` field over the generic status text."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return f"Request failed with status code {response.status_code}"
