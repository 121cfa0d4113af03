from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ROOT_DIR = Path(__file__).resolve().parents[1]

# DB SQLite su file nella root del progetto (sovrascrivibile via env)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{ROOT_DIR / 'centro_aba.sqlite'}")

# In produzione: mettile in variabile d'ambiente
SESSION_SECRET = os.getenv("SESSION_SECRET", "CHANGE_ME_DEV_SECRET")
SESSION_EXPIRE_MINUTES = int(os.getenv("SESSION_EXPIRE_MINUTES", "1440"))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "centro_aba_session")
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin").strip().lower()
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

TIMEZONE = os.getenv("TIMEZONE", "America/Sao_Paulo")
ORG_NAME = os.getenv("ORG_NAME", "Grupo Promove")
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "R$")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def setup_logging() -> None:
    """Configura il logging applicativo (una sola volta per processo)."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
