"""
Risk Scorer: Additive Concentration Risk Model

Pure-function module. No I/O, never raises.
Takes the holder, cluster and liquidity analyses, returns a RiskAssessment.

Architecture:
  - additive points per risk factor, clamped to [0, 10]
  - concentration tiers are exclusive (only the highest applies)
  - liquidity tiers are exclusive (no liquidity OR low liquidity)
  - missing inputs take the most conservative value:
      missing liquidity = no liquidity, missing social = none,
      missing holders / clusters = 0

Note: "no liquidity" and "extreme concentration" are independent, so a
freshly listed token usually carries both. Kept as observed.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any

from tokenrisk.core.constants import (
    RISK_POINTS,
    MAX_RISK_SCORE,
    LARGE_CLUSTER_COUNT,
    HIGH_RISK_SCORE,
)


class Verdict(str, Enum):
    SAFE = "SAFE"
    LOW_RISK = "LOW_RISK"
    MODERATE_RISK = "MODERATE_RISK"
    HIGH_RISK = "HIGH_RISK"
    EXTREME_RISK = "EXTREME_RISK"


class CoarseVerdict(str, Enum):
    SAFE = "SAFE"
    CAUTION = "CAUTION"
    AVOID = "AVOID"


class Action(str, Enum):
    MONITOR = "MONITOR"
    CAUTION = "CAUTION"
    AVOID = "AVOID"


@dataclass
class RiskAssessment:
    score: int
    verdict: Verdict
    coarse_verdict: CoarseVerdict
    recommended_action: Action
    risk_factors: List[str] = field(default_factory=list)

    @property
    def is_high_risk(self) -> bool:
        return self.score >= HIGH_RISK_SCORE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "riskScore": self.score,
            "verdict": self.verdict.value,
            "coarseVerdict": self.coarse_verdict.value,
            "riskFactors": list(self.risk_factors),
            "isHighRisk": self.is_high_risk,
            "recommendedAction": self.recommended_action.value,
        }


# ---------------------------------------------------------------------------
# 1. Verdict mapping
# ---------------------------------------------------------------------------

def verdict_for(score: int) -> Verdict:
    if score >= 8:
        return Verdict.EXTREME_RISK
    if score >= 6:
        return Verdict.HIGH_RISK
    if score >= 4:
        return Verdict.MODERATE_RISK
    if score >= 2:
        return Verdict.LOW_RISK
    return Verdict.SAFE


def coarse_verdict(score: int) -> CoarseVerdict:
    if score <= 3:
        return CoarseVerdict.SAFE
    if score <= 6:
        return CoarseVerdict.CAUTION
    return CoarseVerdict.AVOID


def action_for(score: int) -> Action:
    if score >= 7:
        return Action.AVOID
    if score >= 4:
        return Action.CAUTION
    return Action.MONITOR


# ---------------------------------------------------------------------------
# 2. Factor rules
# ---------------------------------------------------------------------------

def _concentration_factor(top_holder_pct: float) -> Optional[str]:
    if top_holder_pct > 50:
        return "EXTREME_CONCENTRATION"
    if top_holder_pct > 25:
        return "HIGH_CONCENTRATION"
    if top_holder_pct > 10:
        return "MODERATE_CONCENTRATION"
    return None


def _liquidity_factor(liquidity) -> Optional[str]:
    if liquidity is None or not getattr(liquidity, "has_liquidity", False):
        return "NO_LIQUIDITY"
    if getattr(liquidity, "risk_level", "HIGH") == "HIGH":
        return "LOW_LIQUIDITY"
    return None


def _safe_float(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


# ---------------------------------------------------------------------------
# 3. Main scoring function
# ---------------------------------------------------------------------------

def assess_risk(
    holder_analysis=None,
    cluster_analysis=None,
    liquidity=None,
    has_social: Optional[bool] = None,
    high_risk_clusters: Optional[int] = None,
) -> RiskAssessment:
    factors: List[str] = []

    top_pct = _safe_float(getattr(holder_analysis, "top_holder_percentage", 0))
    concentration = _concentration_factor(top_pct)
    if concentration:
        factors.append(concentration)

    large_clusters = _safe_float(getattr(cluster_analysis, "clusters_over_10", 0))
    if large_clusters > LARGE_CLUSTER_COUNT:
        factors.append("MULTIPLE_LARGE_CLUSTERS")

    liquidity_factor = _liquidity_factor(liquidity)
    if liquidity_factor:
        factors.append(liquidity_factor)

    if not has_social:
        factors.append("NO_SOCIAL_PRESENCE")

    if _safe_float(high_risk_clusters) > 0:
        factors.append("SUSPICIOUS_CLUSTERS")

    raw = sum(RISK_POINTS[f] for f in factors)
    score = max(0, min(raw, MAX_RISK_SCORE))

    return RiskAssessment(
        score=score,
        verdict=verdict_for(score),
        coarse_verdict=coarse_verdict(score),
        recommended_action=action_for(score),
        risk_factors=factors,
    )
