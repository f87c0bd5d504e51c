"""
Alert Dispatcher
================
Delivers structured JSON alert payloads to a webhook. Formatting for any
particular chat platform is the receiver's job.

With no ALERT_WEBHOOK_URL configured, alerts are logged only.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

import requests

from tokenrisk.core.config import ALERT_WEBHOOK_URL
from tokenrisk.core.logger import get_logger, log_event

logger = get_logger("workers.dispatcher")


class AlertDispatcher:
    def __init__(self, webhook_url: str = ALERT_WEBHOOK_URL, timeout: float = 5, post: Callable = requests.post):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._post = post
        self.sent = 0
        self.failed = 0

    async def send(self, payload: Dict[str, Any]) -> bool:
        payload = {"timestamp": datetime.now(timezone.utc).isoformat(), **payload}
        if not self.webhook_url:
            log_event(logger, "alert_logged", payload)
            return False

        try:
            resp = await asyncio.to_thread(self._post, self.webhook_url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            self.failed += 1
            logger.error(f"Failed to deliver alert ({payload.get('type')}): {e}")
            return False

        self.sent += 1
        return True

    async def send_suspicious_tokens(self, alerts: List[Dict[str, Any]]) -> bool:
        if not alerts:
            return False
        return await self.send({
            "type": "suspicious_tokens",
            "count": len(alerts),
            "alerts": alerts,
        })

    async def forward_analysis(self, ticker: str, analysis: Dict[str, Any], source: str, gold: bool = False) -> bool:
        return await self.send({
            "type": "gold_analysis" if gold else "analysis",
            "ticker": ticker,
            "source": source,
            "result" if gold else "analysis": analysis,
        })

    async def send_cycle_summary(self, summary: Dict[str, Any]) -> bool:
        return await self.send({"type": "cycle_summary", "summary": summary})
