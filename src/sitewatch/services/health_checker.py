"""
Endpoint health checker.

Performs one bounded-timeout HTTP GET against a URL and reports the result
as a CheckOutcome. Unreachable endpoints, timeouts and error statuses are
what the monitor measures, so `check()` reports them instead of raising.
"""

import logging
import ssl
import time
from typing import Optional, Union

import httpx
from opentelemetry import trace

from sitewatch.models.status import CheckOutcome

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
MAX_BODY_EXCERPT = 500

TlsVerify = Union[bool, str, ssl.SSLContext]


def _ssl_verify(verify: TlsVerify) -> Union[bool, ssl.SSLContext]:
    # httpx wants an SSLContext for custom CA bundles
    if isinstance(verify, str):
        return ssl.create_default_context(cafile=verify)
    return verify


class EndpointHealthChecker:
    """
    Stateless HTTP probe. Safe to share between concurrent checks.

    TLS policy is a deployment choice: pass `verify=False` to trust any
    certificate, a CA bundle path, or an SSLContext. Tests and callers that
    need a different transport can pass their own `client`.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        verify: TlsVerify = True,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout_seconds,
            verify=_ssl_verify(verify),
            follow_redirects=False,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def check(self, url: str) -> CheckOutcome:
        """
        Probe `url` once.

        Returns:
            CheckOutcome with success=True for any status below 400. For
            error statuses the message carries the status line and up to
            500 characters of the body.
        """
        with tracer.start_as_current_span("health.check_endpoint") as span:
            span.set_attribute("http.url", url)

            start = time.perf_counter()
            try:
                async with self._client.stream("GET", url, timeout=self.timeout_seconds) as response:
                    latency_ms = int((time.perf_counter() - start) * 1000)
                    status_code = response.status_code
                    span.set_attribute("http.status_code", status_code)

                    if status_code < 400:
                        logger.debug(f"GET {url} returned {status_code} in {latency_ms}ms")
                        return CheckOutcome(
                            success=True,
                            latency_ms=latency_ms,
                            status_code=status_code,
                        )

                    error_message = f"HTTP {status_code} {response.reason_phrase}".rstrip()
                    excerpt = await self._read_excerpt(response)
                    if excerpt:
                        error_message = f"{error_message}: {excerpt}"

                    logger.warning(f"GET {url} returned {status_code}")
                    return CheckOutcome(
                        success=False,
                        latency_ms=latency_ms,
                        status_code=status_code,
                        error=error_message,
                    )

            except httpx.TimeoutException:
                logger.warning(f"GET {url} timed out")
                return CheckOutcome(success=False, error="request timed out")

            except httpx.TransportError as e:
                logger.warning(f"GET {url} connection failed: {e}")
                return CheckOutcome(success=False, error=f"Connection error: {e}")

            except Exception as e:
                logger.error(f"Error checking {url}: {e}")
                return CheckOutcome(success=False, error=str(e) or type(e).__name__)

    async def _read_excerpt(self, response: httpx.Response) -> Optional[str]:
        """First MAX_BODY_EXCERPT characters of the body; None if it cannot be read."""
        chunks = []
        size = 0
        try:
            async for chunk in response.aiter_text():
                chunks.append(chunk)
                size += len(chunk)
                if size >= MAX_BODY_EXCERPT:
                    break
        except httpx.HTTPError as e:
            logger.debug(f"Could not read error body: {e}")
            return None

        text = "".join(chunks)[:MAX_BODY_EXCERPT].strip()
        return text or None
