"""HTTP client for the compliance advisory service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Mapping

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..suggestions.models import Suggestion
from .errors import ErrorCode, ParseFailure, RequestFailure
from .payloads import decode_response

if TYPE_CHECKING:  # pragma: no cover
    from ..services.settings import Settings

LOGGER = logging.getLogger(__name__)
_GATEWAY_TIMEOUT = 504

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(slots=True)
class ClientSettings:
    """Subset of settings required to configure the advisory client."""

    endpoint_url: str
    api_key: str = ""
    auth_header: str = "Authorization"
    request_timeout: float | None = 60.0
    max_retries: int = 3
    retry_delay_seconds: float = 2.0
    default_headers: Mapping[str, str] | None = None
    debug_logging: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ClientSettings":
        return cls(
            endpoint_url=settings.endpoint_url,
            api_key=settings.api_key,
            auth_header=settings.auth_header,
            request_timeout=settings.request_timeout,
            max_retries=settings.max_retries,
            retry_delay_seconds=settings.retry_delay_seconds,
            default_headers=dict(settings.default_headers),
            debug_logging=settings.enable_debug_logging,
        )


class GatewayTimeout(Exception):
    """Raised internally for HTTP 504 so the retry policy can catch it."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"Gateway timeout from {response.request.url}")
        self.response = response


class AdvisoryClient:
    """Posts document text to the advisory service and decodes its suggestions.

    Gateway timeouts (HTTP 504) and transport timeouts are retried up to
    ``max_retries`` times with a fixed delay. Any other non-success status means
    "no suggestions" and is not retried.
    """

    def __init__(
        self,
        settings: ClientSettings,
        *,
        client: httpx.AsyncClient | None = None,
        sleep: SleepFunc | None = None,
    ) -> None:
        self._settings = settings
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=settings.request_timeout)
        self._sleep = sleep or asyncio.sleep

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    async def analyze(self, code: str, *, strict: bool = False) -> List[Suggestion]:
        """Return the suggestions for ``code``.

        Args:
            code: Full document text.
            strict: Raise :class:`ParseFailure` on a malformed body instead of
                returning an empty list.

        Raises:
            RequestFailure: when the service cannot be reached or keeps timing out.
            ParseFailure: only when ``strict`` is set.
        """

        attempts = 0
        response: httpx.Response | None = None
        try:
            async for attempt in self._retrying():
                with attempt:
                    attempts += 1
                    response = await self._post(code)
        except GatewayTimeout as exc:
            raise RequestFailure(
                error_code=ErrorCode.GATEWAY_TIMEOUT,
                message=f"Analysis service timed out (HTTP 504) after {attempts} attempt(s)",
                status_code=_GATEWAY_TIMEOUT,
                attempts=attempts,
            ) from exc
        except httpx.TimeoutException as exc:
            raise RequestFailure(
                error_code=ErrorCode.TIMEOUT,
                message=f"Analysis request timed out after {attempts} attempt(s)",
                attempts=attempts,
            ) from exc
        except httpx.HTTPError as exc:
            raise RequestFailure(
                message=f"Analysis request failed: {exc}",
                details={"url": self._settings.endpoint_url},
                attempts=attempts,
            ) from exc

        assert response is not None
        if not response.is_success:
            LOGGER.warning(
                "Analysis service returned HTTP %s; treating as no suggestions",
                response.status_code,
            )
            return []

        if self._settings.debug_logging:
            LOGGER.debug("Analysis response body: %s", response.text)
        try:
            suggestions = decode_response(response.content)
        except ParseFailure as exc:
            if strict:
                raise
            LOGGER.warning("Discarding unparseable analysis response: %s", exc)
            return []
        LOGGER.debug("Received %d suggestion(s) after %d attempt(s)", len(suggestions), attempts)
        return suggestions

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, code: str) -> httpx.Response:
        LOGGER.debug("POST %s (%d chars)", self._settings.endpoint_url, len(code))
        response = await self._client.post(
            self._settings.endpoint_url,
            json={"code": code},
            headers=self._build_headers(),
        )
        if response.status_code == _GATEWAY_TIMEOUT:
            LOGGER.info("Analysis service gateway timeout")
            raise GatewayTimeout(response)
        return response

    def _build_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.default_headers:
            headers.update(self._settings.default_headers)
        if self._settings.api_key and self._settings.auth_header:
            headers[self._settings.auth_header] = self._settings.api_key
        return headers

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            stop=stop_after_attempt(max(0, self._settings.max_retries) + 1),
            wait=wait_fixed(self._settings.retry_delay_seconds),
            retry=retry_if_exception_type((GatewayTimeout, httpx.TimeoutException)),
            before_sleep=before_sleep_log(LOGGER, logging.INFO),
            sleep=self._sleep,
        )


__all__ = ["AdvisoryClient", "ClientSettings", "GatewayTimeout"]
