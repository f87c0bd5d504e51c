"""
Analysis Orchestrator
=====================
Drives one token through the risk pipeline.

Deep phases, strictly in order:
  BASIC_INFO -> HOLDER_ANALYSIS -> CLUSTER_ANALYSIS -> STAKE_DEEP_DIVE ->
  HANDLE_RESOLUTION -> LIQUIDITY_ANALYSIS -> RISK_ASSESSMENT -> REPORT
Gold variant adds FREE_RECIPIENTS, ACQUISITION_METHODS, INSIDER_NETWORKS
before REPORT. The quick path runs BASIC_INFO, HOLDER_ANALYSIS,
CLUSTER_ANALYSIS (grouping only) and LIQUIDITY_ANALYSIS.

Every phase is isolated: an exception or empty upstream data leaves the
phase's empty default in place and is recorded in `phase_errors`. The only
error that escapes is UnresolvableTokenError. Persistence after the run is
best-effort.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from tokenrisk.core.errors import UnresolvableTokenError
from tokenrisk.core.logger import get_logger, log_event
from tokenrisk.engines.clusters import ClusterAnalysis, DeepDiveAnalysis, deep_dive, group_clusters
from tokenrisk.engines.gold import (
    AcquisitionAnalysis,
    FreeRecipientAnalysis,
    InsiderNetworkAnalysis,
    classify_acquisition,
    collect_trades,
    detect_insider_networks,
    find_free_recipients,
)
from tokenrisk.engines.handles import HandleResolution, resolve_holder_handles
from tokenrisk.engines.holders import HolderAnalysis, analyze_holders
from tokenrisk.engines.liquidity import LiquiditySummary, summarize_liquidity
from tokenrisk.engines.scoring import RiskAssessment, assess_risk
from tokenrisk.gateway.models import Token

logger = get_logger("engines.pipeline")

DEEP_PHASES = [
    "BASIC_INFO",
    "HOLDER_ANALYSIS",
    "CLUSTER_ANALYSIS",
    "STAKE_DEEP_DIVE",
    "HANDLE_RESOLUTION",
    "LIQUIDITY_ANALYSIS",
    "RISK_ASSESSMENT",
    "REPORT",
]
GOLD_PHASES = ["FREE_RECIPIENTS", "ACQUISITION_METHODS", "INSIDER_NETWORKS"]

NO_DATA = "no data"


class _NoData(Exception):
    pass


@dataclass
class AnalysisReport:
    unit: str
    ticker: Optional[str] = None
    mode: str = "deep"  # 'deep' | 'gold' | 'quick'
    token: Optional[Token] = None
    holders: HolderAnalysis = field(default_factory=HolderAnalysis)
    clusters: ClusterAnalysis = field(default_factory=ClusterAnalysis)
    stake_analysis: DeepDiveAnalysis = field(default_factory=DeepDiveAnalysis)
    handles: HandleResolution = field(default_factory=HandleResolution)
    liquidity: LiquiditySummary = field(default_factory=LiquiditySummary)
    risk: Optional[RiskAssessment] = None
    free_recipients: Optional[FreeRecipientAnalysis] = None
    acquisition: Optional[AcquisitionAnalysis] = None
    insider_networks: Optional[InsiderNetworkAnalysis] = None
    phases_completed: List[str] = field(default_factory=list)
    phase_errors: Dict[str, str] = field(default_factory=dict)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def has_social(self) -> bool:
        return bool(self.token and self.token.social_links)

    @property
    def headline_verdict(self) -> str:
        if self.risk is None:
            return "UNKNOWN"
        if self.mode == "quick":
            return self.risk.coarse_verdict.value
        return self.risk.verdict.value

    @property
    def title(self) -> str:
        return f"{self.mode.capitalize()} Risk Analysis: {self.ticker or self.unit}"

    def summary(self) -> Dict[str, Any]:
        return {
            "riskScore": self.risk.score if self.risk else None,
            "verdict": self.headline_verdict,
            "recommendation": self.risk.recommended_action.value if self.risk else None,
            "topHolderPercentage": round(self.holders.top_holder_percentage, 4),
            "clusterCount": self.clusters.total_clusters,
            "suspiciousClusters": self.clusters.suspicious_clusters,
            "liquidityRisk": self.liquidity.risk_level,
        }

    def to_dict(self, include_holders: bool = False) -> Dict[str, Any]:
        token = self.token or Token(unit=self.unit)
        data = {
            "unit": self.unit,
            "ticker": self.ticker,
            "mode": self.mode,
            "title": self.title,
            "summary": self.summary(),
            "basicInfo": {
                "name": token.name,
                "price": token.price,
                "marketCap": token.market_cap,
                "circulatingSupply": token.circulating_supply,
                "totalSupply": token.total_supply,
                "socialLinks": token.social_links,
                "liquidityPools": token.liquidity_pools,
                "policyId": token.policy_id,
                "assetNameHex": token.asset_name_hex,
            },
            "holderAnalysis": self.holders.to_dict(include_holders=include_holders),
            "clusterAnalysis": self.clusters.to_dict(),
            "liquidityAnalysis": self.liquidity.to_dict(),
            "riskAssessment": self.risk.to_dict() if self.risk else None,
            "verdict": self.headline_verdict,
            "phasesCompleted": list(self.phases_completed),
            "phaseErrors": dict(self.phase_errors),
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
        if self.mode != "quick":
            data["stakeAnalysis"] = self.stake_analysis.to_dict()
            data["adaHandles"] = self.handles.to_dict()
        if self.mode == "gold":
            data["freeTokenAnalysis"] = self.free_recipients.to_dict() if self.free_recipients else None
            data["acquisitionIntelligence"] = self.acquisition.to_dict() if self.acquisition else None
            data["insiderNetworkAnalysis"] = self.insider_networks.to_dict() if self.insider_networks else None
        return data


class AnalysisOrchestrator:
    def __init__(self, gateway, store=None):
        self.gateway = gateway
        self.store = store

    # ------------------------------------------------------------------
    # Phase plumbing
    # ------------------------------------------------------------------

    async def _phase(self, report: AnalysisReport, name: str, func: Callable[[], Awaitable[Any]], default=None):
        try:
            result = await func()
        except _NoData:
            report.phase_errors[name] = NO_DATA
            logger.warning(f"{name}: no data", extra={"unit": report.unit, "phase": name})
            return default
        except Exception as e:
            report.phase_errors[name] = str(e) or type(e).__name__
            logger.error(f"{name} failed: {e}", extra={"unit": report.unit, "phase": name})
            return default
        report.phases_completed.append(name)
        return result

    async def resolve_unit(self, unit: Optional[str], ticker: Optional[str]) -> str:
        if unit:
            return unit
        if not ticker:
            raise UnresolvableTokenError(ticker)

        if self.store is not None:
            try:
                token = await self.store.find_token_by_ticker(ticker)
                if token:
                    return token.unit
            except Exception as e:
                logger.error(f"Ticker lookup failed for {ticker}: {e}")

        for candidate in await self.gateway.top_volume_tokens():
            if candidate.ticker and candidate.ticker.upper() == ticker.upper():
                return candidate.unit

        raise UnresolvableTokenError(ticker)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _basic_info(self, report: AnalysisReport) -> Token:
        mcap, links = await asyncio.gather(
            self.gateway.market_cap(report.unit),
            self.gateway.token_links(report.unit),
        )
        token = Token(unit=report.unit, ticker=report.ticker, social_links=links or {})
        if mcap:
            token.ticker = token.ticker or mcap.ticker
            token.price = mcap.price
            token.circulating_supply = mcap.circulating_supply
            token.total_supply = mcap.total_supply
            token.market_cap = mcap.market_cap
            if not token.market_cap and mcap.price and mcap.circulating_supply:
                token.market_cap = mcap.price * mcap.circulating_supply
        token.name = token.name or token.ticker
        report.ticker = token.ticker
        return token

    async def _holder_analysis(self, report: AnalysisReport) -> HolderAnalysis:
        holders = await self.gateway.top_holders(report.unit)
        if not holders:
            raise _NoData()
        supply = report.token.circulating_supply if report.token else None
        return analyze_holders(holders, supply)

    async def _liquidity(self, report: AnalysisReport) -> LiquiditySummary:
        pools = await self.gateway.liquidity_pools(report.unit)
        if not pools:
            raise _NoData()
        return summarize_liquidity(pools)

    async def _handles(self, report: AnalysisReport) -> HandleResolution:
        known = {
            c.stake_identity: c.connected_addresses
            for c in report.stake_analysis.clusters
            if c.error is None
        }
        resolution = await resolve_holder_handles(report.holders.holders, self.gateway, known)
        for holder in report.holders.holders:
            holder.handle = resolution.primary_handle(holder.stake_identity) or holder.handle
        return resolution

    async def _gold_phases(self, report: AnalysisReport):
        holders = report.holders.holders
        trades = {}

        async def free():
            nonlocal trades
            trades = await collect_trades(holders, report.unit, self.gateway)
            return find_free_recipients(holders, trades, report.unit)

        report.free_recipients = await self._phase(report, "FREE_RECIPIENTS", free, FreeRecipientAnalysis())

        async def acquisition():
            return classify_acquisition(holders, trades, report.unit)

        report.acquisition = await self._phase(report, "ACQUISITION_METHODS", acquisition, AcquisitionAnalysis())

        async def insiders():
            return detect_insider_networks(report.free_recipients)

        report.insider_networks = await self._phase(report, "INSIDER_NETWORKS", insiders, InsiderNetworkAnalysis())

    def _score(self, report: AnalysisReport, high_risk_clusters: Optional[int]) -> RiskAssessment:
        return assess_risk(
            holder_analysis=report.holders,
            cluster_analysis=report.clusters,
            liquidity=report.liquidity if report.liquidity.has_liquidity else None,
            has_social=report.has_social,
            high_risk_clusters=high_risk_clusters,
        )

    async def _finish(self, report: AnalysisReport):
        async def build():
            if report.token is None:
                report.token = Token(unit=report.unit, ticker=report.ticker)
            report.token.liquidity_pools = report.liquidity.pool_count
            report.token.holder_count = report.holders.holder_count
            report.token.top_holder_percentage = report.holders.top_holder_percentage
            if report.risk is not None:
                report.token.risk_score = report.risk.score
            return True

        await self._phase(report, "REPORT", build)
        report.finished_at = datetime.now(timezone.utc)
        await self.persist(report)

        log_event(logger, "analysis_complete", {
            "unit": report.unit,
            "ticker": report.ticker,
            "mode": report.mode,
            "score": report.risk.score if report.risk else None,
            "verdict": report.headline_verdict,
            "phase_errors": list(report.phase_errors),
            "api_calls": self.gateway.get_call_stats().get("total_calls"),
        })

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def analyze(self, unit: Optional[str] = None, ticker: Optional[str] = None, gold: bool = False) -> AnalysisReport:
        resolved = await self.resolve_unit(unit, ticker)
        report = AnalysisReport(unit=resolved, ticker=ticker, mode="gold" if gold else "deep")
        logger.info(f"Starting {report.mode} analysis for {ticker or resolved[:20]}", extra={"unit": resolved})

        report.token = await self._phase(report, "BASIC_INFO", lambda: self._basic_info(report))
        report.holders = await self._phase(
            report, "HOLDER_ANALYSIS", lambda: self._holder_analysis(report), HolderAnalysis()
        )

        async def clusters():
            return group_clusters(report.holders.holders)

        report.clusters = await self._phase(report, "CLUSTER_ANALYSIS", clusters, ClusterAnalysis())
        report.stake_analysis = await self._phase(
            report, "STAKE_DEEP_DIVE",
            lambda: deep_dive(report.clusters.clusters, report.unit, self.gateway),
            DeepDiveAnalysis(),
        )
        report.handles = await self._phase(
            report, "HANDLE_RESOLUTION", lambda: self._handles(report), HandleResolution()
        )
        report.liquidity = await self._phase(
            report, "LIQUIDITY_ANALYSIS", lambda: self._liquidity(report), LiquiditySummary()
        )

        async def risk():
            return self._score(report, report.stake_analysis.high_risk_clusters)

        report.risk = await self._phase(report, "RISK_ASSESSMENT", risk)
        if report.risk is None:
            report.risk = assess_risk()

        if gold:
            await self._gold_phases(report)

        await self._finish(report)
        return report

    async def quick_assess(self, unit: Optional[str] = None, ticker: Optional[str] = None) -> AnalysisReport:
        """Holder + liquidity snapshot, no per-holder calls; coarse verdict."""
        resolved = await self.resolve_unit(unit, ticker)
        report = AnalysisReport(unit=resolved, ticker=ticker, mode="quick")

        report.token = await self._phase(report, "BASIC_INFO", lambda: self._basic_info(report))
        report.holders = await self._phase(
            report, "HOLDER_ANALYSIS", lambda: self._holder_analysis(report), HolderAnalysis()
        )

        async def clusters():
            return group_clusters(report.holders.holders)

        report.clusters = await self._phase(report, "CLUSTER_ANALYSIS", clusters, ClusterAnalysis())
        report.liquidity = await self._phase(
            report, "LIQUIDITY_ANALYSIS", lambda: self._liquidity(report), LiquiditySummary()
        )

        async def risk():
            return self._score(report, None)

        report.risk = await self._phase(report, "RISK_ASSESSMENT", risk)
        if report.risk is None:
            report.risk = assess_risk()

        await self._finish(report)
        return report

    # ------------------------------------------------------------------
    # Persistence (best-effort)
    # ------------------------------------------------------------------

    async def persist(self, report: AnalysisReport):
        if self.store is None:
            return

        steps = [
            ("token", lambda: self.store.upsert_token(report.token)),
            ("holders", lambda: self.store.save_holders(
                report.unit, report.holders.holders + report.holders.excluded_pools_detail
            )),
            ("analysis", lambda: self.store.save_analysis(
                report.unit,
                report.risk.score,
                report.headline_verdict,
                report.holders.top_holder_percentage,
                report.holders.holder_count,
                report.to_dict(),
            )),
        ]
        if report.ticker:
            steps.insert(1, ("ticker_mapping", lambda: self.store.save_ticker_mapping(
                report.ticker, report.unit, 1.0, report.mode
            )))

        for name, write in steps:
            try:
                await write()
            except Exception as e:
                report.phase_errors[f"PERSIST_{name.upper()}"] = str(e)
                logger.error(f"Persisting {name} failed: {e}", extra={"unit": report.unit})
