# config.py
# Role: Environment-driven settings for the trade ledger service.
#       Values are read once at import time from the process environment
#       (and an optional .env file next to the project).

import os
from dotenv import load_dotenv

load_dotenv()

# Base directory of the project (where this module lives)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# -------------------------------------------------------------------
# Database
# -------------------------------------------------------------------

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(BASE_DIR, 'database', 'ledger.db')}",
)

# -------------------------------------------------------------------
# Currencies
# -------------------------------------------------------------------


def _csv_codes(raw: str) -> list[str]:
    return [c.strip().upper() for c in raw.split(",") if c.strip()]


SUPPORTED_CURRENCIES = _csv_codes(os.getenv("SUPPORTED_CURRENCIES", "AUD,USD,EUR"))
DEFAULT_CANONICAL_CURRENCY = os.getenv("DEFAULT_CANONICAL_CURRENCY", "USD").upper()

# Ledger owner used when the caller does not send X-User-Key
DEFAULT_USER_KEY = os.getenv("DEFAULT_USER_KEY", "local")

# -------------------------------------------------------------------
# Rate sources
# -------------------------------------------------------------------

RATE_FETCH_TIMEOUT = float(os.getenv("RATE_FETCH_TIMEOUT", "10"))
FRANKFURTER_URL = os.getenv("FRANKFURTER_URL", "https://api.frankfurter.app")
EXCHANGERATE_HOST_URL = os.getenv("EXCHANGERATE_HOST_URL", "https://api.exchangerate.host")
EXCHANGERATE_HOST_API_KEY = os.getenv("EXCHANGERATE_HOST_API_KEY", "")

# -------------------------------------------------------------------
# Logging
# -------------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE") or None
