from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Dict, Any

from tokenrisk.core.constants import POLICY_ID_LENGTH


def split_unit(unit: str):
    """unit = policy id (56 hex) + asset name hex."""
    return unit[:POLICY_ID_LENGTH], unit[POLICY_ID_LENGTH:]


@dataclass
class Token:
    unit: str
    ticker: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None
    volume_24h: Optional[float] = None
    market_cap: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    risk_score: Optional[int] = None
    top_holder_percentage: Optional[float] = None
    holder_count: Optional[int] = None
    liquidity_pools: Optional[int] = None
    social_links: Dict[str, str] = field(default_factory=dict)
    first_seen: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def policy_id(self) -> str:
        return split_unit(self.unit)[0]

    @property
    def asset_name_hex(self) -> str:
        return split_unit(self.unit)[1]


@dataclass
class CandidateToken:
    unit: str
    ticker: Optional[str] = None
    name: Optional[str] = None
    price: Optional[float] = None
    volume: Optional[float] = None
    market_cap: Optional[float] = None
    source: str = "volume"  # 'volume' | 'mcap'

    def to_token(self) -> Token:
        return Token(
            unit=self.unit,
            ticker=self.ticker,
            name=self.name,
            price=self.price,
            volume_24h=self.volume,
            market_cap=self.market_cap,
        )


@dataclass
class HolderRecord:
    """
    Canonical holder row. `stake_identity` is a stake-level key (stake1...),
    never a payment address.
    """
    stake_identity: str
    quantity: float
    percentage: float = 0.0
    rank: int = 0
    handle: Optional[str] = None
    is_pool: bool = False
    is_exchange: bool = False
    is_burn: bool = False
    is_whale: bool = False
    is_major_holder: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MarketCapSummary:
    ticker: Optional[str] = None
    price: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    market_cap: Optional[float] = None
    fdv: Optional[float] = None


@dataclass
class LiquidityPool:
    exchange: str
    pool_id: Optional[str] = None
    token_a_ticker: Optional[str] = None
    token_a_locked: float = 0.0
    token_b_ticker: Optional[str] = None
    token_b_locked: float = 0.0


@dataclass
class WalletTrade:
    action: str  # 'Buy' | 'Sell'
    token_a: Optional[str] = None
    token_b: Optional[str] = None
    token_a_amount: float = 0.0
    token_b_amount: float = 0.0
    time: Optional[int] = None


@dataclass
class WalletPortfolio:
    ada_balance: float = 0.0
    liquid_value: float = 0.0
    num_fts: int = 0
    num_nfts: int = 0


@dataclass
class AddressAsset:
    unit: str
    quantity: str
