"""
Token Store
===========
PostgreSQL persistence for tokens, holder snapshots, ticker mappings and
analysis history. Every write is an idempotent upsert (last write wins),
except analysis_history which is append-only.

Database errors surface as PersistenceError; callers decide whether a
failed write aborts anything (the pipeline never lets it).
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Set

import psycopg
from psycopg.types.json import Jsonb

from tokenrisk.core.db import get_db_connection
from tokenrisk.core.errors import PersistenceError
from tokenrisk.gateway.models import HolderRecord, Token, split_unit

logger = logging.getLogger("storage.tokens")

TOKEN_FIELDS = [
    "unit", "ticker", "name", "price", "volume_24h", "market_cap", "circulating_supply",
    "total_supply", "social_links", "risk_score", "top_holder_percentage", "holder_count",
    "liquidity_pools", "first_seen", "updated_at",
]
TOKEN_COLUMNS = ", ".join(TOKEN_FIELDS)
JOINED_TOKEN_COLUMNS = ", ".join(f"t.{c}" for c in TOKEN_FIELDS)


def _float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _row_to_token(row) -> Token:
    return Token(
        unit=row[0],
        ticker=row[1],
        name=row[2],
        price=_float(row[3]),
        volume_24h=_float(row[4]),
        market_cap=_float(row[5]),
        circulating_supply=_float(row[6]),
        total_supply=_float(row[7]),
        social_links=row[8] or {},
        risk_score=row[9],
        top_holder_percentage=_float(row[10]),
        holder_count=row[11],
        liquidity_pools=row[12],
        first_seen=row[13],
        updated_at=row[14],
    )


class TokenStore:
    def __init__(self, connect=get_db_connection):
        self._connect = connect

    @asynccontextmanager
    async def _cursor(self, operation: str):
        try:
            async with self._connect() as conn:
                async with conn.cursor() as cur:
                    yield cur
                await conn.commit()
        except psycopg.Error as e:
            logger.error(f"{operation} failed: {e}")
            raise PersistenceError(f"{operation} failed: {e}") from e

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    async def upsert_token(self, token: Token):
        """
        Insert or refresh a token. NULL fields in `token` never overwrite
        values already stored (a lightweight feed row must not erase the
        results of a previous deep analysis).
        """
        policy_id, asset_name_hex = split_unit(token.unit)
        async with self._cursor("upsert_token") as cur:
            await cur.execute(
                """
                INSERT INTO tokens (
                    unit, policy_id, asset_name_hex, ticker, name, price, volume_24h,
                    market_cap, circulating_supply, total_supply, social_links,
                    risk_score, top_holder_percentage, holder_count, liquidity_pools
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (unit) DO UPDATE SET
                    ticker = COALESCE(EXCLUDED.ticker, tokens.ticker),
                    name = COALESCE(EXCLUDED.name, tokens.name),
                    price = COALESCE(EXCLUDED.price, tokens.price),
                    volume_24h = COALESCE(EXCLUDED.volume_24h, tokens.volume_24h),
                    market_cap = COALESCE(EXCLUDED.market_cap, tokens.market_cap),
                    circulating_supply = COALESCE(EXCLUDED.circulating_supply, tokens.circulating_supply),
                    total_supply = COALESCE(EXCLUDED.total_supply, tokens.total_supply),
                    social_links = CASE WHEN EXCLUDED.social_links = '{}'::jsonb
                                        THEN tokens.social_links ELSE EXCLUDED.social_links END,
                    risk_score = COALESCE(EXCLUDED.risk_score, tokens.risk_score),
                    top_holder_percentage = COALESCE(EXCLUDED.top_holder_percentage, tokens.top_holder_percentage),
                    holder_count = COALESCE(EXCLUDED.holder_count, tokens.holder_count),
                    liquidity_pools = COALESCE(EXCLUDED.liquidity_pools, tokens.liquidity_pools),
                    updated_at = NOW()
                """,
                (
                    token.unit, policy_id, asset_name_hex, token.ticker, token.name,
                    token.price, token.volume_24h, token.market_cap,
                    token.circulating_supply, token.total_supply,
                    Jsonb(token.social_links or {}),
                    token.risk_score, token.top_holder_percentage,
                    token.holder_count, token.liquidity_pools,
                ),
            )

    async def find_token_by_unit(self, unit: str) -> Optional[Token]:
        async with self._cursor("find_token_by_unit") as cur:
            await cur.execute(f"SELECT {TOKEN_COLUMNS} FROM tokens WHERE unit = %s", (unit,))
            row = await cur.fetchone()
        return _row_to_token(row) if row else None

    async def find_token_by_ticker(self, ticker: str) -> Optional[Token]:
        """Ticker mapping first (highest confidence), then the tokens table."""
        async with self._cursor("find_token_by_ticker") as cur:
            await cur.execute(
                f"""
                SELECT {JOINED_TOKEN_COLUMNS}
                FROM ticker_mapping m
                JOIN tokens t ON t.unit = m.unit
                WHERE UPPER(m.ticker) = UPPER(%s)
                ORDER BY m.confidence_score DESC
                LIMIT 1
                """,
                (ticker,),
            )
            row = await cur.fetchone()
            if not row:
                await cur.execute(
                    f"""
                    SELECT {TOKEN_COLUMNS} FROM tokens
                    WHERE UPPER(ticker) = UPPER(%s)
                    ORDER BY volume_24h DESC NULLS LAST
                    LIMIT 1
                    """,
                    (ticker,),
                )
                row = await cur.fetchone()
        return _row_to_token(row) if row else None

    async def list_known_units(self) -> Set[str]:
        async with self._cursor("list_known_units") as cur:
            await cur.execute("SELECT unit FROM tokens")
            rows = await cur.fetchall()
        return {row[0] for row in rows}

    async def existing_units(self, units: Iterable[str]) -> Set[str]:
        units = list(units)
        if not units:
            return set()
        async with self._cursor("existing_units") as cur:
            await cur.execute("SELECT unit FROM tokens WHERE unit = ANY(%s)", (units,))
            rows = await cur.fetchall()
        return {row[0] for row in rows}

    # ------------------------------------------------------------------
    # Ticker mapping
    # ------------------------------------------------------------------

    async def save_ticker_mapping(self, ticker: str, unit: str, confidence: float = 1.0, source: str = "analysis"):
        policy_id, asset_name_hex = split_unit(unit)
        async with self._cursor("save_ticker_mapping") as cur:
            await cur.execute(
                """
                INSERT INTO ticker_mapping (ticker, unit, policy_id, asset_name_hex, confidence_score, source)
                VALUES (%s, %s, %s, %s, %s, %s)
                ON CONFLICT (ticker) DO UPDATE SET
                    unit = EXCLUDED.unit,
                    policy_id = EXCLUDED.policy_id,
                    asset_name_hex = EXCLUDED.asset_name_hex,
                    confidence_score = EXCLUDED.confidence_score,
                    source = EXCLUDED.source,
                    updated_at = NOW()
                WHERE EXCLUDED.confidence_score >= ticker_mapping.confidence_score
                """,
                (ticker.upper(), unit, policy_id, asset_name_hex, confidence, source),
            )

    # ------------------------------------------------------------------
    # Holders
    # ------------------------------------------------------------------

    async def save_holders(self, unit: str, holders: List[HolderRecord]):
        if not holders:
            return
        async with self._cursor("save_holders") as cur:
            await cur.executemany(
                """
                INSERT INTO token_holders (
                    unit, stake_address, amount, percentage, rank, ada_handle,
                    is_pool, is_exchange, is_burn_wallet
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (unit, stake_address) DO UPDATE SET
                    amount = EXCLUDED.amount,
                    percentage = EXCLUDED.percentage,
                    rank = EXCLUDED.rank,
                    ada_handle = COALESCE(EXCLUDED.ada_handle, token_holders.ada_handle),
                    is_pool = EXCLUDED.is_pool,
                    is_exchange = EXCLUDED.is_exchange,
                    is_burn_wallet = EXCLUDED.is_burn_wallet,
                    updated_at = NOW()
                """,
                [
                    (
                        unit, h.stake_identity, h.quantity, h.percentage, h.rank or None,
                        h.handle, h.is_pool, h.is_exchange, h.is_burn,
                    )
                    for h in holders
                ],
            )

    # ------------------------------------------------------------------
    # Analysis history
    # ------------------------------------------------------------------

    async def save_analysis(
        self,
        unit: str,
        risk_score: int,
        verdict: str,
        top_holder_percentage: Optional[float],
        holder_count: Optional[int],
        analysis_data: Dict[str, Any],
    ):
        async with self._cursor("save_analysis") as cur:
            await cur.execute(
                """
                INSERT INTO analysis_history (
                    unit, risk_score, verdict, top_holder_percentage, holder_count, analysis_data
                )
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (unit, risk_score, verdict, top_holder_percentage, holder_count, Jsonb(analysis_data)),
            )

    async def analysis_history(self, unit: str, limit: int = 20) -> List[Dict[str, Any]]:
        async with self._cursor("analysis_history") as cur:
            await cur.execute(
                """
                SELECT risk_score, verdict, top_holder_percentage, holder_count, created_at
                FROM analysis_history
                WHERE unit = %s
                ORDER BY created_at DESC
                LIMIT %s
                """,
                (unit, limit),
            )
            rows = await cur.fetchall()
        return [
            {
                "riskScore": row[0],
                "verdict": row[1],
                "topHolderPercentage": _float(row[2]),
                "holderCount": row[3],
                "createdAt": row[4].isoformat() if row[4] else None,
            }
            for row in rows
        ]
