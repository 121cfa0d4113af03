from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from centro_aba.config import BCRYPT_ROUNDS, SESSION_EXPIRE_MINUTES, SESSION_SECRET

TOKEN_ALG = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_session_token(user_id: int, session_id: str, expire: datetime | None = None) -> str:
    """
    Token firmato che viaggia nel cookie di sessione.
    sub = id utente, sid = id della riga Sessione su DB (revocabile al logout).
    """
    now = datetime.now(timezone.utc)
    if expire is None:
        expire = now + timedelta(minutes=SESSION_EXPIRE_MINUTES)
    elif expire.tzinfo is None:
        expire = expire.replace(tzinfo=timezone.utc)

    payload: dict[str, Any] = {
        "sub": str(user_id),
        "sid": session_id,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, SESSION_SECRET, algorithm=TOKEN_ALG)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, SESSION_SECRET, algorithms=[TOKEN_ALG])


def get_session_claims(token: str) -> tuple[int, str] | None:
    """Ritorna (user_id, session_id) se la firma è valida e il token non è scaduto."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None

    sub, sid = payload.get("sub"), payload.get("sid")
    if not sub or not sid:
        return None
    try:
        return int(sub), str(sid)
    except (TypeError, ValueError):
        return None
