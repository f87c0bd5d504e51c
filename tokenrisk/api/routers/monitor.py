"""
Monitor Router
==============
Scheduler status, recent suspicious tokens and the analysis-forwarding
hooks used by external agents.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
import logging

from tokenrisk.api.deps import Services, failure, get_services

logger = logging.getLogger("api.monitor")
router = APIRouter(tags=["monitor"])


class TriggerAnalysisRequest(BaseModel):
    ticker: Optional[str] = None
    analysis: Optional[Dict[str, Any]] = None
    source: Optional[str] = None


class TriggerGoldAnalysisRequest(BaseModel):
    ticker: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    source: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/status")
async def status(services: Services = Depends(get_services)):
    try:
        return {"success": True, "status": services.monitor.status()}
    except Exception as e:
        logger.error(f"Status failed: {e}")
        return failure(500, str(e))


@router.get("/health")
async def health(services: Services = Depends(get_services)):
    return {
        "success": True,
        "status": "healthy",
        "isRunning": services.monitor.state.is_running,
    }


@router.post("/trigger-analysis")
async def trigger_analysis(payload: TriggerAnalysisRequest, services: Services = Depends(get_services)):
    if not payload.ticker or not payload.analysis:
        return failure(400, "ticker and analysis are required")

    source = payload.source or "agent"
    logger.info(f"Forwarding analysis for {payload.ticker} (source: {source})")
    try:
        delivered = await services.dispatcher.forward_analysis(payload.ticker, payload.analysis, source)
    except Exception as e:
        logger.error(f"trigger-analysis failed: {e}")
        return failure(500, str(e))

    return {
        "success": True,
        "message": f"Analysis notification sent for {payload.ticker}",
        "delivered": delivered,
        "source": source,
    }


@router.post("/trigger-gold-analysis")
async def trigger_gold_analysis(payload: TriggerGoldAnalysisRequest, services: Services = Depends(get_services)):
    if not payload.ticker or not payload.result:
        return failure(400, "ticker and result are required")

    source = payload.source or "agent_gold"
    logger.info(f"Forwarding gold analysis for {payload.ticker} (source: {source})")
    try:
        delivered = await services.dispatcher.forward_analysis(payload.ticker, payload.result, source, gold=True)
    except Exception as e:
        logger.error(f"trigger-gold-analysis failed: {e}")
        return failure(500, str(e))

    return {
        "success": True,
        "message": f"Gold Standard notification sent for {payload.ticker}",
        "delivered": delivered,
        "source": source,
    }


@router.get("/suspicious-tokens")
async def suspicious_tokens(limit: int = Query(10, ge=0, le=50), services: Services = Depends(get_services)):
    tokens = services.monitor.suspicious_tokens(limit)
    return {
        "success": True,
        "suspiciousTokens": tokens,
        "count": len(tokens),
        "timestamp": _now(),
    }


@router.get("/monitoring-history")
async def monitoring_history(hours: float = Query(24, gt=0), services: Services = Depends(get_services)):
    return {
        "success": True,
        "history": services.monitor.history(hours),
        "timeframe": f"{hours:g} hours",
        "timestamp": _now(),
    }


@router.get("/api-stats")
async def api_stats(services: Services = Depends(get_services)):
    return {"success": True, "stats": services.gateway.get_call_stats(), "timestamp": _now()}
