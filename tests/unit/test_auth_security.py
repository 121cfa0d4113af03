"""Test hash password e token di sessione."""
from datetime import datetime, timedelta, timezone

from centro_aba.auth_security import (
    create_session_token,
    decode_token,
    get_session_claims,
    hash_password,
    verify_password,
)


def test_hash_e_verifica_password():
    h = hash_password("segreta")

    assert h != "segreta"
    assert verify_password("segreta", h)
    assert not verify_password("sbagliata", h)


def test_token_contiene_utente_e_sessione():
    token = create_session_token(7, "abc-123")

    payload = decode_token(token)
    assert payload["sub"] == "7"
    assert payload["sid"] == "abc-123"
    assert get_session_claims(token) == (7, "abc-123")


def test_token_scaduto_rifiutato():
    scaduto = datetime.now(timezone.utc) - timedelta(minutes=1)

    token = create_session_token(7, "abc-123", expire=scaduto)

    assert get_session_claims(token) is None


def test_token_manomesso_rifiutato():
    token = create_session_token(7, "abc-123")

    header, payload, firma = token.split(".")
    assert get_session_claims(f"{header}.{payload}.{firma[::-1]}") is None
    assert get_session_claims("non-un-token") is None
