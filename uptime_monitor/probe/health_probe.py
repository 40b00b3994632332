"""Single HTTP liveness check against one target."""

from __future__ import annotations

import time
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx
import structlog

from ..errors import ConfigurationError
from ..models import HealthStatus


logger = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = "UptimeMonitor/1.0"


@dataclass(frozen=True)
class ProbeOutcome:
    status: HealthStatus
    response_time_ms: float
    status_code: int | None = None
    error: str | None = None
    url: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == HealthStatus.UP


def build_check_url(base_url: str | None, path: str | None = "/") -> str:
    """Join the target URL and the health-check path with exactly one slash."""
    base = (base_url or "").strip()
    if not base:
        raise ConfigurationError("Target has no URL to probe")
    p = (path or "/").strip() or "/"
    return base.rstrip("/") + "/" + p.lstrip("/")


def _safe_url(url: str) -> str:
    """
    Drop querystrings so tokens in health-check URLs do not end up in logs.
    """
    s = (url or "").strip()
    if not s:
        return s
    try:
        parts = urlsplit(s)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    except ValueError:
        return s[:500]


def classify_status_code(status_code: int) -> HealthStatus:
    if 200 <= status_code < 400:
        return HealthStatus.UP
    if 400 <= status_code < 500:
        # Reachable, but reporting a client-side condition
        return HealthStatus.WARNING
    if status_code >= 500:
        return HealthStatus.DOWN
    return HealthStatus.WARNING


def classify_transport_error(exc: BaseException) -> HealthStatus:
    # ConnectError covers refused connections and DNS resolution failures.
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return HealthStatus.DOWN
    return HealthStatus.WARNING


class HealthProbe:
    """Performs liveness checks; every outcome is reduced to up/warning/down."""

    def __init__(self, client: httpx.AsyncClient | None = None, *, user_agent: str = DEFAULT_USER_AGENT):
        self._client = client
        self._owns_client = client is None
        self.user_agent = user_agent

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HealthProbe":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def probe(self, base_url: str | None, path: str | None = "/", timeout_seconds: float = 30.0) -> ProbeOutcome:
        """Probe ``base_url + path``.

        Raises ConfigurationError when there is no URL; any network outcome is
        returned as a ProbeOutcome instead of raised.
        """
        url = build_check_url(base_url, path)
        client = self._get_client()
        headers = {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/json,*/*",
        }

        started = time.perf_counter()
        try:
            resp = await client.get(url, headers=headers, follow_redirects=True, timeout=float(timeout_seconds))
        except httpx.RequestError as e:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            status = classify_transport_error(e)
            logger.warning("Health check failed", url=_safe_url(url), status=status.value, error=f"{type(e).__name__}: {e}")
            return ProbeOutcome(
                status=status,
                response_time_ms=round(elapsed_ms, 3),
                error=f"{type(e).__name__}: {e}",
                url=_safe_url(url),
            )
        except Exception as e:
            # Anything else (invalid URL, TLS library quirks) is ambiguous, not a hard down.
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            logger.warning("Health check errored", url=_safe_url(url), error=f"{type(e).__name__}: {e}")
            return ProbeOutcome(
                status=HealthStatus.WARNING,
                response_time_ms=round(elapsed_ms, 3),
                error=f"{type(e).__name__}: {e}",
                url=_safe_url(url),
            )

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        status = classify_status_code(resp.status_code)
        error = None
        if status != HealthStatus.UP:
            error = f"HTTP {resp.status_code}"

        logger.debug("Health check completed", url=_safe_url(url), status=status.value, status_code=resp.status_code,
                     response_time_ms=round(elapsed_ms, 3))
        return ProbeOutcome(
            status=status,
            response_time_ms=round(elapsed_ms, 3),
            status_code=resp.status_code,
            error=error,
            url=_safe_url(str(resp.url)),
        )
