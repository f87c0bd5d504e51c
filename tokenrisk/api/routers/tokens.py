"""
Tokens Router
=============
Stored token lookup, analysis history and on-demand analysis.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
import logging

from tokenrisk.api.deps import Services, failure, get_services
from tokenrisk.core.constants import POLICY_ID_LENGTH
from tokenrisk.core.errors import PersistenceError, UnresolvableTokenError

logger = logging.getLogger("api.tokens")
router = APIRouter(tags=["tokens"])

ANALYSIS_MODES = {"quick", "deep", "gold"}


class AnalyzeRequest(BaseModel):
    ticker: Optional[str] = None
    unit: Optional[str] = None
    mode: str = "deep"


@router.post("/analyze")
async def analyze(payload: AnalyzeRequest, services: Services = Depends(get_services)):
    if not payload.ticker and not payload.unit:
        return failure(400, "ticker or unit is required")
    if payload.mode not in ANALYSIS_MODES:
        return failure(400, f"mode must be one of {sorted(ANALYSIS_MODES)}")

    orchestrator = services.orchestrator
    logger.info(f"On-demand {payload.mode} analysis for {payload.ticker or payload.unit}")
    try:
        if payload.mode == "quick":
            report = await orchestrator.quick_assess(unit=payload.unit, ticker=payload.ticker)
        else:
            report = await orchestrator.analyze(
                unit=payload.unit, ticker=payload.ticker, gold=payload.mode == "gold"
            )
    except UnresolvableTokenError as e:
        logger.warning(str(e))
        return failure(404, str(e))

    return {"success": True, "report": report.to_dict()}


def _looks_like_unit(identifier: str) -> bool:
    if len(identifier) < POLICY_ID_LENGTH:
        return False
    try:
        bytes.fromhex(identifier)
    except ValueError:
        return False
    return True


@router.get("/tokens/{ticker}")
async def get_token(ticker: str, services: Services = Depends(get_services)):
    """Lookup by ticker, or by unit when the path is a policy id + asset name hex."""
    try:
        if _looks_like_unit(ticker):
            token = await services.store.find_token_by_unit(ticker)
        else:
            token = await services.store.find_token_by_ticker(ticker)
    except PersistenceError:
        return failure(503, "Token store not available")
    if token is None:
        return failure(404, f"Token not found: {ticker}")

    return {
        "success": True,
        "token": {
            "unit": token.unit,
            "ticker": token.ticker,
            "name": token.name,
            "policyId": token.policy_id,
            "price": token.price,
            "volume24h": token.volume_24h,
            "marketCap": token.market_cap,
            "riskScore": token.risk_score,
            "topHolderPercentage": token.top_holder_percentage,
            "holderCount": token.holder_count,
            "liquidityPools": token.liquidity_pools,
            "socialLinks": token.social_links,
            "firstSeen": token.first_seen.isoformat() if token.first_seen else None,
            "updatedAt": token.updated_at.isoformat() if token.updated_at else None,
        },
    }


@router.get("/tokens/{unit}/history")
async def token_history(unit: str, limit: int = Query(20, ge=1, le=200), services: Services = Depends(get_services)):
    try:
        history = await services.store.analysis_history(unit, limit)
    except PersistenceError:
        return failure(503, "Token store not available")
    return {"success": True, "unit": unit, "history": history, "count": len(history)}
