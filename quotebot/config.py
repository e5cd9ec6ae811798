"""Configuration: env vars, provider endpoints, pacing, breaker and session tuning."""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Primary provider (NSE website JSON API)
# ---------------------------------------------------------------------------
NSE_BASE_URL: str = os.getenv("NSE_BASE_URL", "https://www.nseindia.com")
NSE_TIMEOUT_SECONDS: float = _env_float("NSE_TIMEOUT_SECONDS", 10.0)
NSE_QUOTE_ENDPOINT: str = "/api/quote-equity"
NSE_MARKET_STATUS_ENDPOINT: str = "/api/marketStatus"

# ---------------------------------------------------------------------------
# Secondary provider (Yahoo Finance chart API)
# ---------------------------------------------------------------------------
YAHOO_CHART_URL: str = os.getenv(
    "YAHOO_CHART_URL", "https://query1.finance.yahoo.com/v8/finance/chart"
)
YAHOO_TIMEOUT_SECONDS: float = _env_float("YAHOO_TIMEOUT_SECONDS", 8.0)
YAHOO_SYMBOL_SUFFIX: str = os.getenv("YAHOO_SYMBOL_SUFFIX", ".NS")

# ---------------------------------------------------------------------------
# Request pacing (seconds)
# ---------------------------------------------------------------------------
THROTTLE: dict[str, dict[str, float]] = {
    "nse": {
        "min_delay": _env_float("NSE_MIN_DELAY_SECONDS", 2.0),
        "jitter": _env_float("NSE_JITTER_SECONDS", 3.0),
    },
    "yahoo": {
        "min_delay": _env_float("YAHOO_MIN_DELAY_SECONDS", 1.0),
        "jitter": _env_float("YAHOO_JITTER_SECONDS", 2.0),
    },
}

# Short pause before every outbound call so request timing is never periodic.
PRE_REQUEST_DELAY_RANGE: tuple[float, float] = (
    _env_float("PRE_REQUEST_DELAY_MIN_SECONDS", 0.1),
    _env_float("PRE_REQUEST_DELAY_MAX_SECONDS", 0.5),
)

# ---------------------------------------------------------------------------
# Session, circuit breaker, retry
# ---------------------------------------------------------------------------
SESSION_REFRESH_INTERVAL_SECONDS: float = _env_float(
    "SESSION_REFRESH_INTERVAL_SECONDS", 30 * 60
)
SESSION_INIT_KEY: str = "SESSION_INIT"

BREAKER_FAILURE_THRESHOLD: int = _env_int("BREAKER_FAILURE_THRESHOLD", 5)
BREAKER_TIMEOUT_SECONDS: float = _env_float("BREAKER_TIMEOUT_SECONDS", 30.0)

RATE_LIMIT_RETRY_DELAY_SECONDS: float = _env_float("RATE_LIMIT_RETRY_DELAY_SECONDS", 5.0)
RATE_LIMIT_MAX_RETRIES: int = _env_int("RATE_LIMIT_MAX_RETRIES", 1)

# Whole-request deadline for the live tiers; past it the synthetic tier answers.
QUOTE_REQUEST_TIMEOUT_SECONDS: float = _env_float("QUOTE_REQUEST_TIMEOUT_SECONDS", 45.0)

# ---------------------------------------------------------------------------
# Synthetic tier
# ---------------------------------------------------------------------------
SYNTHETIC_BASE_PRICE: float = _env_float("SYNTHETIC_BASE_PRICE", 1000.0)
SYNTHETIC_PRICE_SPREAD: float = 0.2     # last price within base ± 20 %

# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------
SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
SESSION_KEEPALIVE_MINUTES: int = _env_int("SESSION_KEEPALIVE_MINUTES", 25)
STATS_LOG_MINUTES: int = _env_int("STATS_LOG_MINUTES", 15)
WARMUP_MINUTES: int = _env_int("WARMUP_MINUTES", 0)     # 0 disables the warm-up job
WARMUP_SYMBOL_LIMIT: int = _env_int("WARMUP_SYMBOL_LIMIT", 10)

# NSE cash-market trading window, exchange local time.  The warm-up job only
# runs inside it.
MARKET_TIMEZONE: str = "Asia/Kolkata"
MARKET_HOURS: dict[str, str] = {"open": "09:15", "close": "15:30"}

MAX_SYMBOLS_PER_REQUEST: int = 50
MAX_SYMBOL_LENGTH: int = 20

# ---------------------------------------------------------------------------
# Browser fingerprints rotated on every primary-provider request
# ---------------------------------------------------------------------------
USER_AGENTS: list[str] = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:109.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

ACCEPT_HEADERS: list[str] = [
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7",
    "application/json,text/plain,*/*",
    "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
]

# ---------------------------------------------------------------------------
# Symbols
# ---------------------------------------------------------------------------
# Display names used when the secondary payload carries none.
COMPANY_NAMES: dict[str, str] = {
    "RELIANCE": "Reliance Industries Limited",
    "TCS": "Tata Consultancy Services Limited",
    "HDFCBANK": "HDFC Bank Limited",
    "INFY": "Infosys Limited",
    "ICICIBANK": "ICICI Bank Limited",
    "HDFC": "Housing Development Finance Corporation Limited",
    "ITC": "ITC Limited",
    "KOTAKBANK": "Kotak Mahindra Bank Limited",
    "LT": "Larsen & Toubro Limited",
    "AXISBANK": "Axis Bank Limited",
    "BHARTIARTL": "Bharti Airtel Limited",
    "ASIANPAINT": "Asian Paints Limited",
    "MARUTI": "Maruti Suzuki India Limited",
    "BAJFINANCE": "Bajaj Finance Limited",
    "NESTLEIND": "Nestle India Limited",
    "HCLTECH": "HCL Technologies Limited",
    "WIPRO": "Wipro Limited",
    "ULTRACEMCO": "UltraTech Cement Limited",
    "SUNPHARMA": "Sun Pharmaceutical Industries Limited",
    "TITAN": "Titan Company Limited",
}

NIFTY_100_SYMBOLS: list[str] = [
    "RELIANCE", "TCS", "HDFCBANK", "INFY", "HDFC", "ICICIBANK", "KOTAKBANK",
    "HINDUNILVR", "SBIN", "BHARTIARTL", "ITC", "ASIANPAINT", "LT", "AXISBANK",
    "MARUTI", "DMART", "SUNPHARMA", "TITAN", "ULTRACEMCO", "NESTLEIND",
    "BAJFINANCE", "WIPRO", "M&M", "NTPC", "TECHM", "HCLTECH", "POWERGRID",
    "TATASTEEL", "ADANIENT", "ONGC", "COALINDIA", "IOC", "GRASIM", "SBILIFE",
    "BAJAJ-AUTO", "HDFCLIFE", "BRITANNIA", "JSWSTEEL", "CIPLA", "DRREDDY",
    "DIVISLAB", "EICHERMOT", "GODREJCP", "HEROMOTOCO", "INDUSINDBK", "SHREECEM",
    "TATAMOTORS", "UPL", "APOLLOHOSP", "BAJAJFINSV", "BPCL", "HINDALCO",
    "PIDILITIND", "TATACONSUM", "DABUR", "ADANIPORTS", "SIEMENS", "GAIL",
    "MARICO", "LUPIN", "COLPAL", "MCDOWELL-N", "ACC", "VEDL", "BANDHANBNK",
    "BIOCON", "CADILAHC", "CONCOR", "HAVELLS", "ICICIPRULI", "MOTHERSUMI",
    "MRF", "NAUKRI", "OFSS", "PEL", "PETRONET", "PFC", "RECLTD", "SAIL",
    "TORNTPHARM", "TORNTPOWER", "TRENT", "UBL", "VOLTAS", "WHIRLPOOL",
    "AMBUJACEM", "ASHOKLEY", "BANKBARODA", "BERGEPAINT", "CANBK", "CUMMINSIND",
    "DLF", "GICRE", "HDFCAMC", "IBULHSGFIN", "L&TFH", "LICHSGFIN", "NMDC",
    "PAGEIND", "PNB", "RAMCOCEM", "SRTRANSFIN", "TATACHEM", "TATAPOWER",
    "INDIGO", "BAJAJHLDNG", "JUBLFOOD", "MANAPPURAM", "MUTHOOTFIN", "INDIANB",
]
