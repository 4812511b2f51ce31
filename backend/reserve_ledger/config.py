"""Application configuration."""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
DB_PATH = BASE_DIR / "data" / "reserve_ledger.db"
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite+aiosqlite:///{DB_PATH}"

# Single authorized caller for reserve/vault mutations
LEDGER_OWNER = os.getenv("LEDGER_OWNER", "")

# Valuation sources
FUND_VALUE_API_URL = os.getenv("FUND_VALUE_API_URL", "http://localhost:8545/fund-value")
PRICE_FEED_API_URL = os.getenv("PRICE_FEED_API_URL", "http://localhost:8545/price-feeds")
TOKEN_VALUE_CALCULATOR = os.getenv("TOKEN_VALUE_CALCULATOR", "")
CURRENCY_VALUE_CALCULATOR = os.getenv("CURRENCY_VALUE_CALCULATOR", "")
SHARES_HOLDER = os.getenv("SHARES_HOLDER", "")

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))  # seconds
PRICE_FEED_CACHE_TTL = int(os.getenv("PRICE_FEED_CACHE_TTL", "30"))  # seconds

# Ensure data directory exists (only needed for local SQLite, skip if DATABASE_URL is overridden)
if not os.getenv("DATABASE_URL"):
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
