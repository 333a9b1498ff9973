"""HTTP client for the CoinGecko REST API."""

import asyncio
import time
from typing import Any, Awaitable, Callable

import httpx

from cryptodash.services.errors import UpstreamError, UpstreamThrottled
from cryptodash.utils.config import UpstreamConfig, config
from cryptodash.utils.event_store import UPSTREAM_CALL, EventStore
from cryptodash.utils.logger import StructuredLogger


class CoinGeckoClient:
    """
    Issues one logical GET against the upstream.

    A 429 answer is retried exactly once after a fixed cool-down; everything
    else (other non-2xx, timeouts, transport errors) fails immediately.
    Callers are expected to go through the RequestQueue so that calls are
    serialized and spaced.
    """

    def __init__(
        self,
        settings: UpstreamConfig | None = None,
        event_store: EventStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            settings: Upstream configuration (defaults to the global config)
            event_store: Optional event store receiving one event per HTTP attempt
            transport: Optional httpx transport, used by tests to stub the upstream
            sleep: Coroutine used for the 429 cool-down
        """
        self.settings = settings or config.upstream
        self.base_url = self.settings.base_url.rstrip("/")
        self.event_store = event_store
        self._transport = transport
        self._sleep = sleep
        self.logger = StructuredLogger("CoinGeckoClient")

    def build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    async def fetch(self, path: str) -> Any:
        """
        Fetch and decode one upstream resource.

        Args:
            path: Path relative to the API base URL, including the query string

        Returns:
            The decoded JSON body

        Raises:
            UpstreamThrottled: If the upstream answers 429 twice
            UpstreamError: On any other non-2xx status, timeout or decoding failure
        """
        response = await self._get(path)

        if response.status_code == 429:
            self.logger.warning(
                "Upstream rate limit reached, cooling down before retry",
                context={"path": path, "cooldown_seconds": self.settings.throttle_cooldown},
            )
            await self._sleep(self.settings.throttle_cooldown)
            response = await self._get(path)
            if response.status_code == 429:
                raise UpstreamThrottled(path=path)

        if not response.is_success:
            raise UpstreamError(
                f"{response.status_code} {response.reason_phrase}".strip(),
                status_code=response.status_code,
                path=path,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Invalid JSON from upstream: {e}", status_code=response.status_code, path=path
            ) from e

    async def _get(self, path: str) -> httpx.Response:
        url = self.build_url(path)
        start = time.perf_counter()
        self.logger.debug("Calling CoinGecko API", context={"url": url})

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.timeout,
                headers={"Accept": "application/json", "User-Agent": self.settings.user_agent},
            ) as client:
                response = await client.get(url)
        except httpx.TimeoutException as e:
            self._record(path, start, status="failed", error="timeout")
            raise UpstreamError(
                f"Upstream request timed out after {self.settings.timeout:g}s", path=path
            ) from e
        except httpx.HTTPError as e:
            self._record(path, start, status="failed", error=type(e).__name__)
            raise UpstreamError(f"Upstream request failed: {e}", path=path) from e

        self._record(
            path,
            start,
            status="success" if response.is_success else "failed",
            status_code=response.status_code,
        )
        return response

    def _record(self, path: str, start: float, **context: Any) -> None:
        duration_ms = (time.perf_counter() - start) * 1000
        context["path"] = path
        if context.get("status") == "success":
            self.logger.info("Upstream response received", context={**context, "duration_ms": round(duration_ms, 1)})
        else:
            self.logger.warning("Upstream call failed", context={**context, "duration_ms": round(duration_ms, 1)})
        if self.event_store is not None:
            self.event_store.add_event(
                event_type=UPSTREAM_CALL,
                component="CoinGeckoClient",
                message=f"GET {path}",
                context=context,
                duration_ms=duration_ms,
            )
