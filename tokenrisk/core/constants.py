# ==============================================================================
# TOKEN IDENTITY
# ==============================================================================
POLICY_ID_LENGTH = 56                    # hex chars (28 bytes)
LOVELACE = "lovelace"

# ADA Handle policy; handle assets are matched by unit prefix
HANDLE_POLICY_ID = "f0ff48bbb7bbe9d59a40f1ce90e9e9d0ff5002ec48f232b49ca0fb9a"

# ==============================================================================
# GATEWAY CACHE TTLs (seconds)
# ==============================================================================
CACHE_TTL = {
    "holders": 15 * 60,
    "liquidity": 60 * 60,
    "market_cap": 30 * 60,
    "top_volume": 10 * 60,
}

# ==============================================================================
# HOLDER ANALYSIS
# ==============================================================================
TOP_HOLDERS_PER_PAGE = 100
POOL_THRESHOLD_PCT = 10.0                # single holder above this = presumed pool
WHALE_THRESHOLD_PCT = 3.0
MAJOR_HOLDER_THRESHOLD_PCT = 1.0

# ==============================================================================
# CLUSTER ANALYSIS
# ==============================================================================
SUSPICIOUS_SINGLE_MEMBER_PCT = 3.0
DEEP_DIVE_CLUSTER_LIMIT = 25
DEEP_DIVE_TRADES_PER_PAGE = 50
MANY_CONNECTED_WALLETS = 10
DOMINANT_STAKE_PCT = 25.0
HIGH_TRADE_COUNT = 20
LOW_TOKEN_DIVERSITY = 3
HIGH_RISK_MIN_FLAGS = 1

# ==============================================================================
# HANDLE RESOLUTION
# ==============================================================================
HANDLE_RESOLUTION_LIMIT = 20             # holders per run
HANDLE_ADDRESSES_PER_STAKE = 10          # payment addresses checked per stake

# ==============================================================================
# LIQUIDITY
# ==============================================================================
LOW_LIQUIDITY_ADA = 100_000              # below = "low liquidity" (+1)
DEEP_LIQUIDITY_ADA = 1_000_000
LIQUIDITY_SCORE_BANDS = [
    # (min ADA locked, score)
    (1_000_000, 10),
    (500_000, 8),
    (100_000, 6),
    (50_000, 4),
    (10_000, 2),
    (0, 1),
]

# ==============================================================================
# RISK SCORING
# ==============================================================================
RISK_POINTS = {
    "EXTREME_CONCENTRATION": 4,          # top holder > 50%
    "HIGH_CONCENTRATION": 3,             # top holder > 25%
    "MODERATE_CONCENTRATION": 2,         # top holder > 10%
    "MULTIPLE_LARGE_CLUSTERS": 2,        # > 3 clusters over 10%
    "NO_LIQUIDITY": 3,
    "LOW_LIQUIDITY": 1,
    "NO_SOCIAL_PRESENCE": 1,
    "SUSPICIOUS_CLUSTERS": 2,            # >= 1 high-risk cluster
}
MAX_RISK_SCORE = 10
LARGE_CLUSTER_PCT = 10.0
LARGE_CLUSTER_COUNT = 3
HIGH_RISK_SCORE = 7

# ==============================================================================
# GOLD STANDARD ENRICHMENTS
# ==============================================================================
FREE_RECIPIENT_SCAN_LIMIT = 50
ACQUISITION_SCAN_LIMIT = 25
FREE_RECIPIENT_TRADES_PER_PAGE = 20
INSIDER_STAKE_PREFIX_LEN = 20
HIGH_FREE_ALLOCATION_RATIO = 0.3         # > 30% of holders received for free
MASSIVE_FREE_DISTRIBUTION_PCT = 50.0

# ==============================================================================
# MONITORING
# ==============================================================================
TOP_VOLUME_TIMEFRAME = "1h"
TOP_VOLUME_LIMIT = 100
MCAP_PAGES = range(7, 13)                # pages 7-12 cover the degen band
MCAP_PER_PAGE = 20
MCAP_BAND_MIN = 30_000
MCAP_BAND_MAX = 175_000
SAVE_BATCH_SIZE = 10
GOLD_MIN_VOLUME = 1_000                  # ADA
ALERT_RISK_SCORE = 7
ALERT_CONCENTRATION_PCT = 60.0
RECENT_ALERTS_MAX = 50

# Structurally concentrated tokens, skipped before analysis
EXCLUDED_TOKENS = {
    "Stablecoin": ["DJED", "USDM", "iUSD", "USDA", "USDC", "USDT", "DAI", "BUSD"],
    "Bridge Token": ["rsERG", "rsADA", "rsBTC", "rsETH", "WETH", "WBTC", "WADA"],
    "Infrastructure Token": ["MIN", "SUNDAE", "MILK", "LENFI", "COPI", "WMT", "INDY"],
    "Known Safe Token": ["ADA", "CARDANO", "HOSKY", "STRIKE", "AGENT", "SNEK", "IAG", "WMTX", "CHAD"],
}

SOCIAL_LINK_FIELDS = [
    "website", "twitter", "discord", "telegram", "github", "reddit",
    "medium", "youtube", "instagram", "facebook", "email",
]
