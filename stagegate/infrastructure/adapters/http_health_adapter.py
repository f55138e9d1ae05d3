"""
HTTP Health Adapter

Architectural Intent:
- Infrastructure adapter implementing HealthCheckPort
- A 2xx response from the endpoint means "serving"; anything else is a detail
  for the readiness prober, never an exception
"""

import asyncio
import logging
import urllib.error
import urllib.request

from stagegate.domain.value_objects.observation import ReadinessResult

logger = logging.getLogger(__name__)


class HttpHealthAdapter:
    async def check(self, url: str, timeout: float = 5.0) -> ReadinessResult:
        def _check():
            try:
                with urllib.request.urlopen(url, timeout=timeout) as response:
                    status = response.status
            except urllib.error.HTTPError as e:
                return ReadinessResult.unhealthy(f"{url} returned HTTP {e.code}")
            except (urllib.error.URLError, OSError) as e:
                return ReadinessResult.unhealthy(f"{url} unreachable: {e}")
            if 200 <= status < 300:
                return ReadinessResult.healthy(f"{url} returned HTTP {status}")
            return ReadinessResult.unhealthy(f"{url} returned HTTP {status}")

        result = await asyncio.get_event_loop().run_in_executor(None, _check)
        logger.debug("Health check %s: %s", url, result.detail)
        return result
