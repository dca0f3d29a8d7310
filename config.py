"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


# ── SQLite ────────────────────────────────────────────────
TASK_DB_PATH: str = os.getenv("TASK_DB_PATH", "./data/tasks.db")

# ── Connection Pool ───────────────────────────────────────
DB_MAX_OPEN_CONNS: int = int(os.getenv("DB_MAX_OPEN_CONNS", "25"))
DB_MAX_IDLE_CONNS: int = int(os.getenv("DB_MAX_IDLE_CONNS", "5"))
DB_CONN_MAX_LIFETIME: float = float(os.getenv("DB_CONN_MAX_LIFETIME", "3600"))
DB_CONN_MAX_IDLE_TIME: float = float(os.getenv("DB_CONN_MAX_IDLE_TIME", "900"))
DB_POOL_TIMEOUT: float = float(os.getenv("DB_POOL_TIMEOUT", "30"))

# ── Locking ───────────────────────────────────────────────
DB_BUSY_TIMEOUT_MS: int = int(os.getenv("DB_BUSY_TIMEOUT_MS", "5000"))

# ── Startup ───────────────────────────────────────────────
DB_STARTUP_ATTEMPTS: int = int(os.getenv("DB_STARTUP_ATTEMPTS", "3"))

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
