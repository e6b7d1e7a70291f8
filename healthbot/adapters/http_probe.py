"""HTTP surface probe for pages, API endpoints and security headers."""

import asyncio
import time
from typing import Any, Dict, Optional

import aiohttp

from ..config import Settings
from ..logging import get_logger
from ..models.surfaces import ProbeOutcome, ProbeResult, Surface

logger = get_logger(__name__)

POST_BODY = {"test": True}


def status_outcome(status_code: int) -> ProbeOutcome:
    """Classify an HTTP status that did not meet expectations."""
    if status_code >= 500:
        return 'server_error'
    if status_code >= 400:
        return 'client_error'
    return 'unexpected_status'


class HttpProbe:
    """Bounded-time HTTP checks against the platform's public surfaces."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        user_agent: str = "HealthBot/1.0",
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the probe."""
        # Remove trailing slash for consistency
        self._base_url = base_url.rstrip('/')
        self._timeout = timeout
        self._user_agent = user_agent
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpProbe":
        return cls(
            settings.base_url,
            timeout=settings.probe_timeout,
            user_agent=settings.user_agent,
        )

    async def __aenter__(self) -> "HttpProbe":
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={"User-Agent": self._user_agent})
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def url_for(self, surface: Surface) -> str:
        """Absolute URL of a surface."""
        if surface.kind == 'security_headers':
            return self._base_url
        path = surface.target if surface.target.startswith('/') else f"/{surface.target}"
        return f"{self._base_url}{path}"

    async def probe(self, surface: Surface) -> ProbeResult:
        """Probe one HTTP surface. Network failures become failed results."""
        if self._session is None:
            raise RuntimeError("HttpProbe must be used as an async context manager")
        if surface.kind == 'storage_table':
            raise ValueError(f"HttpProbe cannot probe storage table {surface.name}")

        start = time.monotonic()
        try:
            if surface.kind == 'security_headers':
                result = await self._probe_headers(surface)
            else:
                result = await self._probe_status(surface)
        except (asyncio.TimeoutError, TimeoutError):
            result = ProbeResult(
                surface=surface,
                outcome='timeout',
                detail=f"Request timed out after {self._timeout}s",
            )
        except aiohttp.ClientError as e:
            result = ProbeResult(
                surface=surface,
                outcome='unreachable',
                detail=str(e) or type(e).__name__,
            )

        result.duration_ms = int((time.monotonic() - start) * 1000)

        if not result.passed:
            logger.warning(
                "Probe failed",
                surface=surface.name,
                kind=surface.kind,
                outcome=result.outcome,
                status_code=result.status_code,
                detail=result.detail
            )
        return result

    async def _probe_status(self, surface: Surface) -> ProbeResult:
        kwargs: Dict[str, Any] = {}
        if surface.method.upper() == 'POST':
            kwargs['json'] = POST_BODY

        async with self._session.request(
            surface.method.upper(),
            self.url_for(surface),
            timeout=aiohttp.ClientTimeout(total=self._timeout),
            **kwargs
        ) as response:
            status = response.status

        if surface.accepts(status):
            return ProbeResult(surface=surface, outcome='passed', status_code=status)

        if surface.kind == 'api':
            detail = f"Expected {list(surface.expected_statuses)}, got {status}"
        else:
            detail = f"HTTP {status} response"

        return ProbeResult(
            surface=surface,
            outcome=status_outcome(status),
            status_code=status,
            detail=detail,
        )

    async def _probe_headers(self, surface: Surface) -> ProbeResult:
        async with self._session.head(
            self.url_for(surface),
            timeout=aiohttp.ClientTimeout(total=self._timeout),
            allow_redirects=True,
        ) as response:
            status = response.status
            missing = [
                header for header in surface.required_headers
                if not response.headers.get(header)
            ]

        if not missing:
            return ProbeResult(surface=surface, outcome='passed', status_code=status)

        return ProbeResult(
            surface=surface,
            outcome='missing_header',
            status_code=status,
            detail="Security header not present in response",
            missing_headers=missing,
        )
