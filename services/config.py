# services/config.py
from __future__ import annotations
import os

from dotenv import load_dotenv

load_dotenv()  # loads values from a local .env file if present

# ------------------------------------------------------------------------------
# Helper: get env var with fallback
# ------------------------------------------------------------------------------
def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return v if v is not None and v != "" else default

def _env_list(name: str, default: str = "") -> list[str]:
    return [x.strip() for x in _env(name, default).split(",") if x.strip()]

# ------------------------------------------------------------------------------
# Database / app
# ------------------------------------------------------------------------------
DB_URL: str = _env("DB_URL", "sqlite://./db.sqlite3")
LOG_LEVEL: str = _env("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS: list[str] = _env_list("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")

# ------------------------------------------------------------------------------
# Auth (token issuing lives outside this service)
# ------------------------------------------------------------------------------
JWT_SECRET_KEY: str = _env("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM: str = _env("JWT_ALGORITHM", "HS256")

# Roles allowed to upload spreadsheets and run invoicing
ADMIN_ROLES: set[str] = {r.upper() for r in _env_list("ADMIN_ROLES", "ADMIN,SUPER_ADMIN,ADMIN_STAFF")}

# Bootstrap admin is only created when a password is configured
BOOTSTRAP_ADMIN_USERNAME: str = _env("BOOTSTRAP_ADMIN_USERNAME", "admin")
BOOTSTRAP_ADMIN_EMAIL: str = _env("BOOTSTRAP_ADMIN_EMAIL", "admin@example.com")
BOOTSTRAP_ADMIN_PASSWORD: str = _env("BOOTSTRAP_ADMIN_PASSWORD", "")

# ------------------------------------------------------------------------------
# Ingestion
# ------------------------------------------------------------------------------
DEFAULT_DATA_SOURCE: str = _env("DEFAULT_DATA_SOURCE", "cemig_upload")
DEFAULT_PROCESSING_TYPE: str = _env("DEFAULT_PROCESSING_TYPE", "cemig")

# How many missing installation numbers go into the batch error payload / the message
MISSING_DETAILS_LIMIT: int = int(_env("MISSING_DETAILS_LIMIT", "100"))
MISSING_MESSAGE_LIMIT: int = int(_env("MISSING_MESSAGE_LIMIT", "10"))

# ------------------------------------------------------------------------------
# Invoicing
# ------------------------------------------------------------------------------
DEFAULT_CEMIG_RATE: float = float(_env("DEFAULT_CEMIG_RATE", "0.96"))
DEFAULT_DISCOUNT: float = float(_env("DEFAULT_DISCOUNT", "0.20"))
KWH_TO_CO2_KG: float = float(_env("KWH_TO_CO2_KG", "0.09"))  # kg CO2 per compensated kWh
INVOICE_DUE_DAYS: int = int(_env("INVOICE_DUE_DAYS", "15"))
INVOICE_HISTORY_MONTHS: int = int(_env("INVOICE_HISTORY_MONTHS", "5"))
