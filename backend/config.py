import os

# Market data providers (keys come from the environment / .env)
FINNHUB_API_KEY = os.getenv("FINNHUB_API_KEY", "")
FMP_API_KEY = os.getenv("FMP_API_KEY", "")
FINNHUB_BASE_URL = os.getenv("FINNHUB_BASE_URL", "https://finnhub.io/api/v1")
FMP_BASE_URL = os.getenv("FMP_BASE_URL", "https://financialmodelingprep.com/api/v3")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "10"))

# Cache TTLs
PRICE_CACHE_TTL_SECONDS = 60
PROFILE_CACHE_TTL_SECONDS = 60 * 60
HISTORICAL_CACHE_TTL_SECONDS = 24 * 60 * 60
FEATURED_CACHE_TTL_SECONDS = 60 * 60
COMPREHENSIVE_CACHE_TTL_SECONDS = 60 * 60
FUNDAMENTAL_CACHE_TTL_SECONDS = 24 * 60 * 60
PRESCREEN_CACHE_TTL_SECONDS = 60 * 60
CACHE_MAX_ENTRIES_PER_CATEGORY = 500

# Rate limiting for screening calls (provider free tier: 60 calls/min)
MAX_CALLS_PER_MINUTE = 60
MIN_CALL_INTERVAL_SECONDS = 1.0
RATE_LIMIT_WINDOW_SECONDS = 60.0
RATE_LIMIT_CALL_TIMEOUT_SECONDS = 15.0

# Stagger between consecutive dashboard provider calls
REQUEST_STAGGER_SECONDS = 0.1

# Scheduler
FEATURED_REFRESH_MINUTES = 60
INDICES_REFRESH_MINUTES = 5
CACHE_SWEEP_MINUTES = 15

# Dividend planner defaults
PORTFOLIO_SIZE = 5
MAX_SCREENING_CANDIDATES = 30
DEFAULT_DIVIDEND_YIELD = 0.03
DIVIDEND_HISTORY_START = "2010-01-01"

# Global watchlist (market leaders) and index ETFs
FEATURED_SYMBOLS = ["AAPL", "MSFT", "GOOGL", "AMZN", "NVDA"]
MARKET_INDEX_SYMBOLS = ["SPY", "QQQ", "DIA", "IWM"]

# Curated dividend payers used when the screener endpoint is unavailable
DIVIDEND_FALLBACK_UNIVERSE = [
    "O", "JNJ", "KO", "PG", "JPM", "MSFT", "AAPL", "ABBV", "PEP", "XOM",
    "CVX", "MCD", "WMT", "HD", "VZ", "T", "MO", "MAIN", "STAG",
]

# Last-resort holdings when screening cannot fill the portfolio
RELIABLE_DIVIDEND_PAYERS = ["O", "JNJ", "KO", "PG", "MAIN"]
