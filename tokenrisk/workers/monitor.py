"""
Monitoring Scheduler
====================
Periodic discovery and risk analysis of new tokens.

One cycle:
  1. candidates = top-volume list (1h, 100) + market-cap band pages,
     merged by unit (volume provenance wins)
  2. partition into new / existing against the Store
  3. upsert lightweight metadata for every candidate, batches of 10
  4. pick up to NEW_TOKEN_CAP new, volume-sourced, non-denylisted tokens
  5. analyze them one at a time (gold variant above GOLD_MIN_VOLUME)
  6. alert on score >= 7 or top holder >= 60%, emit the cycle summary

Cycles never overlap. The known-unit set is loaded from the Store once and
only grows.
"""
import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Deque, Dict, List, Optional, Set, Tuple

from tokenrisk.core.config import (
    EXTRA_EXCLUDED_TICKERS,
    INTER_TOKEN_DELAY_SECONDS,
    MONITOR_INTERVAL_HOURS,
    NEW_TOKEN_CAP,
)
from tokenrisk.core.constants import (
    ALERT_CONCENTRATION_PCT,
    ALERT_RISK_SCORE,
    EXCLUDED_TOKENS,
    GOLD_MIN_VOLUME,
    MCAP_BAND_MAX,
    MCAP_BAND_MIN,
    MCAP_PAGES,
    MCAP_PER_PAGE,
    RECENT_ALERTS_MAX,
    SAVE_BATCH_SIZE,
    TOP_VOLUME_LIMIT,
    TOP_VOLUME_TIMEFRAME,
)
from tokenrisk.core.errors import UnresolvableTokenError
from tokenrisk.core.logger import configure_logging, get_logger, log_event
from tokenrisk.engines.pipeline import AnalysisOrchestrator
from tokenrisk.gateway.models import CandidateToken
from tokenrisk.workers.dispatcher import AlertDispatcher

logger = get_logger("workers.monitor")

_EXCLUDED_UPPER = {
    reason: {t.upper() for t in tickers} for reason, tickers in EXCLUDED_TOKENS.items()
}


def exclusion_reason(ticker: Optional[str], name: Optional[str], extra: Set[str] = EXTRA_EXCLUDED_TICKERS) -> Optional[str]:
    """Denylist category for a token, matched case-insensitively on ticker or name."""
    identifiers = {s.strip().upper() for s in (ticker, name) if s and s.strip()}
    if not identifiers:
        return None
    for reason, tickers in _EXCLUDED_UPPER.items():
        if identifiers & tickers:
            return reason
    if identifiers & extra:
        return "Operator Excluded"
    return None


@dataclass
class CycleSummary:
    cycle: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    volume_candidates: int = 0
    mcap_candidates: int = 0
    candidates: int = 0
    new_tokens: int = 0
    existing_tokens: int = 0
    saved: int = 0
    save_failures: int = 0
    analyzed: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    alerts: List[Dict[str, Any]] = field(default_factory=list)
    top_volume: List[Dict[str, Any]] = field(default_factory=list)
    api_calls: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        duration = (self.finished_at - self.started_at).total_seconds() if self.finished_at else None
        return {
            "cycle": self.cycle,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "durationSeconds": duration,
            "candidates": self.candidates,
            "volumeCandidates": self.volume_candidates,
            "mcapCandidates": self.mcap_candidates,
            "newTokens": self.new_tokens,
            "existingTokens": self.existing_tokens,
            "saved": self.saved,
            "saveFailures": self.save_failures,
            "analyzed": self.analyzed,
            "skipped": self.skipped,
            "failures": self.failures,
            "suspicious": len(self.alerts),
            "topVolume": self.top_volume,
            "apiCalls": self.api_calls,
        }


@dataclass
class MonitoringCycleState:
    known_units: Set[str] = field(default_factory=set)
    recent_alerts: Deque[Dict[str, Any]] = field(default_factory=lambda: deque(maxlen=RECENT_ALERTS_MAX))
    last_cycle_at: Optional[datetime] = None
    next_cycle_at: Optional[datetime] = None
    budget_used: int = 0
    api_calls_last_cycle: int = 0
    cycle_count: int = 0
    is_running: bool = False
    known_loaded: bool = False
    last_summary: Optional[CycleSummary] = None


class MonitoringScheduler:
    def __init__(
        self,
        gateway,
        store,
        orchestrator: Optional[AnalysisOrchestrator] = None,
        dispatcher: Optional[AlertDispatcher] = None,
        interval_hours: float = MONITOR_INTERVAL_HOURS,
        inter_token_delay: float = INTER_TOKEN_DELAY_SECONDS,
        new_token_cap: int = NEW_TOKEN_CAP,
    ):
        self.gateway = gateway
        self.store = store
        self.orchestrator = orchestrator or AnalysisOrchestrator(gateway, store)
        self.dispatcher = dispatcher or AlertDispatcher()
        self.interval_hours = interval_hours
        self.inter_token_delay = inter_token_delay
        self.new_token_cap = new_token_cap
        self.state = MonitoringCycleState()
        self.started_at = datetime.now(timezone.utc)
        self._cycle_lock = asyncio.Lock()
        self._stop_event: Optional[asyncio.Event] = None

    # ------------------------------------------------------------------
    # Known set
    # ------------------------------------------------------------------

    async def load_known_units(self):
        try:
            units = await self.store.list_known_units()
        except Exception as e:
            logger.error(f"Failed to load known tokens: {e}")
            return
        self.state.known_units |= set(units)
        self.state.known_loaded = True
        logger.info(f"Loaded {len(self.state.known_units)} known tokens")

    # ------------------------------------------------------------------
    # Cycle steps
    # ------------------------------------------------------------------

    async def collect_candidates(self) -> Tuple[List[CandidateToken], List[CandidateToken], List[CandidateToken]]:
        volume = await self.gateway.top_volume_tokens(TOP_VOLUME_TIMEFRAME, TOP_VOLUME_LIMIT)

        mcap = []
        for page in MCAP_PAGES:
            rows = await self.gateway.top_mcap_tokens(page, MCAP_PER_PAGE)
            mcap.extend(
                t for t in rows
                if t.market_cap is not None and MCAP_BAND_MIN <= t.market_cap <= MCAP_BAND_MAX
            )

        merged: Dict[str, CandidateToken] = {}
        for token in volume:
            merged.setdefault(token.unit, token)
        for token in mcap:
            merged.setdefault(token.unit, token)

        return volume, mcap, list(merged.values())

    async def partition(self, candidates: List[CandidateToken]) -> Tuple[List[CandidateToken], List[CandidateToken]]:
        units = [c.unit for c in candidates]
        try:
            existing_units = set(await self.store.existing_units(units))
        except Exception as e:
            logger.error(f"Store lookup failed, using in-memory known set: {e}")
            existing_units = set()
        existing_units |= self.state.known_units & set(units)

        new, existing = [], []
        for c in candidates:
            (existing if c.unit in existing_units else new).append(c)
        self.state.known_units |= {c.unit for c in existing}
        return new, existing

    async def save_candidates(self, candidates: List[CandidateToken]) -> Tuple[int, int]:
        saved = failed = 0
        for i in range(0, len(candidates), SAVE_BATCH_SIZE):
            batch = candidates[i:i + SAVE_BATCH_SIZE]
            results = await asyncio.gather(
                *(self.store.upsert_token(c.to_token()) for c in batch),
                return_exceptions=True,
            )
            for candidate, result in zip(batch, results):
                if isinstance(result, BaseException):
                    failed += 1
                    logger.warning(f"Failed to save token {candidate.ticker or candidate.unit[:16]}: {result}")
                else:
                    saved += 1
                    self.state.known_units.add(candidate.unit)
        return saved, failed

    def select_for_analysis(self, new: List[CandidateToken], summary: CycleSummary) -> List[CandidateToken]:
        selected = []
        for token in new:
            if token.source != "volume":
                continue
            reason = exclusion_reason(token.ticker, token.name)
            if reason:
                summary.skipped.append({"unit": token.unit, "ticker": token.ticker, "reason": reason})
                logger.info(f"Skipping {token.ticker or token.unit[:16]}: {reason}")
                continue
            selected.append(token)
        return selected

    def alert_for(self, token: CandidateToken, report) -> Optional[Dict[str, Any]]:
        score = report.risk.score
        top_pct = report.holders.top_holder_percentage
        reasons = []
        if score >= ALERT_RISK_SCORE:
            reasons.append(f"High Risk Score: {score}/10")
        if top_pct >= ALERT_CONCENTRATION_PCT:
            reasons.append(f"High Concentration: {top_pct:.2f}%")
        if not reasons:
            return None
        return {
            "unit": token.unit,
            "ticker": report.ticker or token.ticker,
            "name": token.name,
            "volume": token.volume,
            "source": token.source,
            "riskScore": score,
            "topHolderPercentage": round(top_pct, 4),
            "verdict": report.headline_verdict,
            "mode": report.mode,
            "alertReasons": reasons,
            "discoveredAt": datetime.now(timezone.utc).isoformat(),
        }

    async def analyze_tokens(self, tokens: List[CandidateToken], summary: CycleSummary):
        for i, token in enumerate(tokens):
            if self.state.budget_used >= self.new_token_cap:
                logger.info(f"Analysis budget of {self.new_token_cap} spent; {len(tokens) - i} token(s) deferred")
                break
            if i > 0 and self.inter_token_delay > 0:
                await asyncio.sleep(self.inter_token_delay)
            self.state.budget_used += 1

            gold = (token.volume or 0) >= GOLD_MIN_VOLUME
            label = token.ticker or token.unit[:16]
            logger.info(f"Analyzing {i + 1}/{len(tokens)}: {label} ({'gold' if gold else 'deep'})")
            try:
                report = await self.orchestrator.analyze(unit=token.unit, ticker=token.ticker, gold=gold)
            except UnresolvableTokenError as e:
                summary.failures.append({"unit": token.unit, "ticker": token.ticker, "error": str(e)})
                logger.warning(str(e))
                continue
            except Exception as e:
                summary.failures.append({"unit": token.unit, "ticker": token.ticker, "error": str(e)})
                logger.error(f"Analysis failed for {label}: {e}")
                continue

            summary.analyzed.append({
                "unit": token.unit,
                "ticker": report.ticker,
                "riskScore": report.risk.score,
                "verdict": report.headline_verdict,
                "topHolderPercentage": round(report.holders.top_holder_percentage, 4),
                "mode": report.mode,
            })
            alert = self.alert_for(token, report)
            if alert:
                summary.alerts.append(alert)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> Optional[CycleSummary]:
        if self._cycle_lock.locked():
            logger.warning("Monitoring cycle already in progress; skipping")
            return None

        async with self._cycle_lock:
            if not self.state.known_loaded:
                await self.load_known_units()

            self.state.cycle_count += 1
            self.state.budget_used = 0
            now = datetime.now(timezone.utc)
            self.state.last_cycle_at = now
            self.gateway.reset_call_stats()
            summary = CycleSummary(cycle=self.state.cycle_count, started_at=now)
            log_event(logger, "cycle_start", {"cycle": summary.cycle})

            try:
                volume, mcap, candidates = await self.collect_candidates()
                summary.volume_candidates = len(volume)
                summary.mcap_candidates = len(mcap)
                summary.candidates = len(candidates)
                summary.top_volume = [
                    {"ticker": t.ticker, "unit": t.unit, "volume": t.volume} for t in volume[:5]
                ]

                if candidates:
                    new, existing = await self.partition(candidates)
                    summary.new_tokens = len(new)
                    summary.existing_tokens = len(existing)

                    summary.saved, summary.save_failures = await self.save_candidates(candidates)

                    selected = self.select_for_analysis(new, summary)
                    await self.analyze_tokens(selected, summary)
                else:
                    logger.warning("No candidate tokens from volume or market cap sources")

                if summary.alerts:
                    self.state.recent_alerts.extend(summary.alerts)
                    log_event(logger, "suspicious_tokens", {"count": len(summary.alerts)})
                    await self.dispatcher.send_suspicious_tokens(summary.alerts)
            except Exception as e:
                logger.error(f"Monitoring cycle {summary.cycle} failed: {e}", exc_info=True)

            summary.api_calls = self.gateway.get_call_stats()
            summary.finished_at = datetime.now(timezone.utc)
            self.state.api_calls_last_cycle = summary.api_calls.get("total_calls", 0)
            self.state.last_summary = summary

            data = summary.to_dict()
            log_event(logger, "cycle_complete", data)
            await self.dispatcher.send_cycle_summary(data)
            return summary

    async def run_forever(self):
        self._stop_event = asyncio.Event()
        self.state.is_running = True
        logger.info(
            f"Starting monitoring: every {self.interval_hours}h, up to {self.new_token_cap} new tokens per cycle"
        )
        await self.load_known_units()

        try:
            while not self._stop_event.is_set():
                await self.run_cycle()
                interval = self.interval_hours * 3600
                self.state.next_cycle_at = datetime.now(timezone.utc) + timedelta(seconds=interval)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                except asyncio.TimeoutError:
                    pass
        except asyncio.CancelledError:
            logger.info("Monitoring cancelled")
        finally:
            self.state.is_running = False
            self.state.next_cycle_at = None
            logger.info("Monitoring stopped")

    def stop(self):
        self.state.is_running = False
        if self._stop_event is not None:
            self._stop_event.set()

    # ------------------------------------------------------------------
    # Read views (HTTP surface)
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        state = self.state
        return {
            "isRunning": state.is_running,
            "tokensMonitored": len(state.known_units),
            "lastCheck": state.last_cycle_at.isoformat() if state.last_cycle_at else "Never",
            "alertsTriggered": len(state.recent_alerts),
            "nextCheck": state.next_cycle_at.isoformat() if state.is_running and state.next_cycle_at else "Not scheduled",
            "cycleCount": state.cycle_count,
            "budgetUsed": state.budget_used,
            "apiCallsLastCycle": state.api_calls_last_cycle,
            "uptime": (datetime.now(timezone.utc) - self.started_at).total_seconds(),
        }

    def suspicious_tokens(self, limit: int = 10) -> List[Dict[str, Any]]:
        if limit <= 0:
            return []
        return list(self.state.recent_alerts)[-limit:][::-1]

    def history(self, hours: float = 24) -> Dict[str, Any]:
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        recent = [
            a for a in self.state.recent_alerts
            if datetime.fromisoformat(a["discoveredAt"]) >= cutoff
        ]
        return {
            "suspiciousTokens": recent,
            "totalMonitored": len(self.state.known_units),
            "lastCycle": self.state.last_cycle_at.isoformat() if self.state.last_cycle_at else None,
            "isRunning": self.state.is_running,
            "lastSummary": self.state.last_summary.to_dict() if self.state.last_summary else None,
        }


async def run_monitor():
    from tokenrisk.core.db import init_db, close_db
    from tokenrisk.gateway.gateway import DataGateway
    from tokenrisk.storage.tokens import TokenStore

    await init_db()
    gateway = DataGateway()
    scheduler = MonitoringScheduler(gateway, TokenStore())
    try:
        await scheduler.run_forever()
    finally:
        await gateway.close()
        await close_db()


if __name__ == "__main__":
    configure_logging()
    try:
        asyncio.run(run_monitor())
    except KeyboardInterrupt:
        pass
