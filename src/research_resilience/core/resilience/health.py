"""Best-effort liveness probes for configured endpoints."""

import asyncio
import logging
import time
from typing import Iterable, Optional

import httpx

from research_resilience.config.endpoints import EndpointConfig
from research_resilience.core.observability import audit_log, redact_sensitive_data

logger = logging.getLogger(__name__)


async def probe_endpoint(
    client: httpx.AsyncClient,
    endpoint: EndpointConfig,
) -> bool:
    """Send one HEAD request; healthy means a 2xx answer.

    Transport failures are reported as unhealthy, never raised.
    """
    started = time.monotonic()
    status_code: Optional[int] = None
    try:
        response = await client.head(endpoint.url)
        status_code = response.status_code
        healthy = response.is_success
    except httpx.HTTPError as e:
        healthy = False
        logger.warning(
            "%s health check failed: %s",
            endpoint.name,
            redact_sensitive_data(str(e) or type(e).__name__),
        )

    audit_log(
        "health_check",
        endpoint=endpoint.name,
        healthy=healthy,
        status_code=status_code,
        duration_ms=round((time.monotonic() - started) * 1000, 2),
    )
    return healthy


async def check_endpoints_health(
    endpoints: Iterable[EndpointConfig],
    *,
    timeout: float = 5.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> dict[str, bool]:
    """Probe every endpoint that has a URL, concurrently.

    Args:
        endpoints: Endpoint configs to probe; entries without a URL are skipped.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).

    Returns:
        Mapping of endpoint name to health.
    """
    targets = [endpoint for endpoint in endpoints if endpoint.url]
    if not targets:
        return {}

    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        results = await asyncio.gather(*(probe_endpoint(client, endpoint) for endpoint in targets))

    return {endpoint.name: healthy for endpoint, healthy in zip(targets, results)}
