import os
from pathlib import Path
from dotenv import load_dotenv

# --- Base Directory ---
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# --- Load Environment Variables ---
load_dotenv(BASE_DIR / ".env")


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


# --- ShipStation ---
SHIPSTATION_API_KEY = os.getenv("SHIPSTATION_API_KEY", "")
SHIPSTATION_API_SECRET = os.getenv("SHIPSTATION_API_SECRET", "")
SHIPSTATION_BASE_URL = os.getenv("SHIPSTATION_BASE_URL", "https://ssapi.shipstation.com")
SHIPSTATION_SOURCE = os.getenv("SHIPSTATION_SOURCE", "orders")

# ShipStation rate limit: 40 requests per second across all callers.
PAGE_SIZE = int(os.getenv("SHIPSTATION_PAGE_SIZE", "500"))
PAGE_DELAY_SECONDS = float(os.getenv("SHIPSTATION_PAGE_DELAY", "0.1"))
REQUEST_TIMEOUT_SECONDS = float(os.getenv("SHIPSTATION_REQUEST_TIMEOUT", "30"))
OPERATION_TIMEOUT_SECONDS = float(os.getenv("OPERATION_TIMEOUT", "120"))

# Matched as case-insensitive substrings of the record status.
EXCLUDED_STATUSES = _csv(os.getenv("EXCLUDED_STATUSES", "cancelled,rejected,void"))

# --- SKU Store ---
SKU_STORE_BACKEND = os.getenv("SKU_STORE_BACKEND", "file")
SKU_STORE_PATH = Path(
    os.getenv("SKU_STORE_PATH", str(Path.home() / ".inventory_connector" / "db.json"))
)
SKU_STORE_URL = os.getenv("SKU_STORE_URL", "sqlite:///inventory_connector.db")
IMPORT_BATCH_SIZE = int(os.getenv("IMPORT_BATCH_SIZE", "500"))
HISTORY_LIMIT = 100

# --- QuickBooks / IIF ---
DEFAULT_INVENTORY_ACCOUNT = os.getenv("DEFAULT_INVENTORY_ACCOUNT", "1500 · Inventory")
IIF_MODE = os.getenv("IIF_MODE", "per-item")

# --- Output ---
OUTPUT_DIR = BASE_DIR / os.getenv("OUTPUT_DIR", "output")
LOG_DIR = BASE_DIR / os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
