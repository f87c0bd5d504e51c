import logging
from typing import Any, Dict, Optional

import httpx

from tokenrisk.core.ratelimit import TokenBucket
from tokenrisk.gateway.ledger import CallLedger


class UpstreamClient:
    """
    Thin JSON-over-HTTP client for one upstream API.

    Every call waits on the API's token bucket, is recorded in the call
    ledger, and resolves to parsed JSON or None. Errors never escape:
    timeouts, non-2xx statuses and undecodable bodies are logged and
    reported as "no data". No retries.
    """

    name = "upstream"

    def __init__(
        self,
        base_url: str,
        headers: Dict[str, str],
        timeout: float,
        rate_per_second: float,
        ledger: Optional[CallLedger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = logging.getLogger(f"gateway.{self.name}")
        self.ledger = ledger or CallLedger()
        self.bucket = TokenBucket(rate_per_second)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        await self.bucket.acquire()
        self.ledger.record(f"{self.name}:{path}")
        try:
            resp = await self._client.get(path, params=params)
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            return resp.json()
        except httpx.TimeoutException:
            self.logger.warning(f"{self.name} timeout on {path}")
            return None
        except httpx.HTTPError as e:
            self.logger.error(f"{self.name} request failed on {path}: {e}")
            return None
        except ValueError as e:
            self.logger.error(f"{self.name} returned malformed JSON on {path}: {e}")
            return None

    async def aclose(self):
        await self._client.aclose()
