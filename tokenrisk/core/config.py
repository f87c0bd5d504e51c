import os

# Database
DATABASE_URL = os.environ.get("DATABASE_URL")
DB_POOL_MAX_SIZE = int(os.environ.get("DB_POOL_MAX_SIZE", "10"))
DB_POOL_TIMEOUT = float(os.environ.get("DB_POOL_TIMEOUT", "10"))

# Market / holder data API (TapTools)
TAPTOOLS_API_KEY = os.environ.get("TAPTOOLS_API_KEY", "")
TAPTOOLS_BASE_URL = os.environ.get("TAPTOOLS_BASE_URL", "https://openapi.taptools.io/api/v1")
TAPTOOLS_TIMEOUT = float(os.environ.get("TAPTOOLS_TIMEOUT", "30"))
TAPTOOLS_RATE_PER_SECOND = float(os.environ.get("TAPTOOLS_RATE_PER_SECOND", "2"))

# Blockchain indexing API (Blockfrost)
BLOCKFROST_API_KEY = os.environ.get("BLOCKFROST_API_KEY", "")
BLOCKFROST_BASE_URL = os.environ.get("BLOCKFROST_BASE_URL", "https://cardano-mainnet.blockfrost.io/api/v0")
BLOCKFROST_TIMEOUT = float(os.environ.get("BLOCKFROST_TIMEOUT", "30"))
BLOCKFROST_RATE_PER_SECOND = float(os.environ.get("BLOCKFROST_RATE_PER_SECOND", "5"))

# Alert delivery (JSON webhook). Empty = log only.
ALERT_WEBHOOK_URL = os.environ.get("ALERT_WEBHOOK_URL", "")

# Monitoring control
MONITOR_ENABLED = os.environ.get("MONITOR_ENABLED", "1") == "1"
MONITOR_INTERVAL_HOURS = float(os.environ.get("MONITOR_INTERVAL_HOURS", "4"))
INTER_TOKEN_DELAY_SECONDS = float(os.environ.get("INTER_TOKEN_DELAY_SECONDS", "2"))
NEW_TOKEN_CAP = int(os.environ.get("NEW_TOKEN_CAP", "3"))

# Extra denylisted tickers (comma-separated), merged with the built-in list
EXTRA_EXCLUDED_TICKERS = {
    t.strip().upper() for t in os.environ.get("EXTRA_EXCLUDED_TICKERS", "").split(",") if t.strip()
}

PORT = int(os.environ.get("PORT", "4001"))
