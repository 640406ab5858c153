# orderflow/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./orderflow.db")
STORE_BACKEND = os.getenv("STORE_BACKEND", "sql")  # sql | memory
STORE_RETRY_ATTEMPTS = int(os.getenv("STORE_RETRY_ATTEMPTS", 3))

# okno deduplikacji zamowien (sekundy)
IDEMPOTENCY_TTL_SECONDS = int(os.getenv("IDEMPOTENCY_TTL_SECONDS", 300))

CART_SAVE_MAX_ATTEMPTS = int(os.getenv("CART_SAVE_MAX_ATTEMPTS", 3))
CART_RETRY_BASE_DELAY = float(os.getenv("CART_RETRY_BASE_DELAY", 0.1))

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
ORDER_LIST_LIMIT = int(os.getenv("ORDER_LIST_LIMIT", 50))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
