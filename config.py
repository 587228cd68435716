"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ── Database provider ─────────────────────────────────────
# Only "postgres" ships with a storage adapter.
DATABASE_PROVIDER: str = os.getenv("DATABASE_PROVIDER", "postgres").strip().lower() or "postgres"

# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "crud_gateway")
DB_USER: str = os.getenv("DB_USER", "crud_gateway_user")
DB_PASS: str = os.getenv("DB_PASS", "")

DATABASE_URL: str = os.getenv("DATABASE_URL") or (
    f"postgresql://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# ── Table policy ──────────────────────────────────────────
_raw_tables = os.getenv("FORBIDDEN_TABLES", "")
FORBIDDEN_TABLES: list[str] = (
    [name.strip() for name in _raw_tables.split(",") if name.strip()]
    if _raw_tables
    else []
)

# ── Hashing ───────────────────────────────────────────────
BCRYPT_COST: int = int(os.getenv("BCRYPT_COST", "12"))

# ── Query limits ──────────────────────────────────────────
QUERY_MAX_ROWS: int = int(os.getenv("QUERY_MAX_ROWS", "10000"))
DEFAULT_ROW_LIMIT: int = int(os.getenv("DEFAULT_ROW_LIMIT", "1000"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper()
