from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Any

from sqlalchemy import delete, func, select

from centro_aba.auth_models import Sessione, Utente, utc_now
from centro_aba.auth_security import create_session_token, get_session_claims, hash_password, verify_password
from centro_aba.config import SESSION_EXPIRE_MINUTES
from centro_aba.db import db_session
from centro_aba.models import Appuntamento

logger = logging.getLogger(__name__)

CAMPI_PROFILO = ("nome", "username", "professione", "indirizzo", "data_nascita", "pix")
CAMPI_SOLO_ADMIN = ("is_admin", "is_active")


def _normalizza_username(username: str | None) -> str:
    return (username or "").strip().lower()


def utente_flat(u: Utente) -> dict[str, Any]:
    """Rappresentazione pubblica dell'utente: mai l'hash della password."""
    return {
        "id": u.id,
        "nome": u.nome,
        "username": u.username,
        "professione": u.professione,
        "indirizzo": u.indirizzo,
        "data_nascita": u.data_nascita.isoformat() if u.data_nascita else None,
        "pix": u.pix,
        "is_admin": u.is_admin,
        "is_active": u.is_active,
        "creato_il": u.creato_il.isoformat() if u.creato_il else None,
    }


def crea_utente(
    nome: str,
    username: str,
    password: str,
    conferma_password: str | None = None,
    is_admin: bool = False,
    professione: str | None = None,
    indirizzo: str | None = None,
    data_nascita: date | None = None,
    pix: str | None = None,
) -> dict[str, Any]:
    username = _normalizza_username(username)
    nome = (nome or "").strip()
    if not nome or not username or not password:
        raise ValueError("Nome, username e password sono obbligatori.")
    if conferma_password is not None and password != conferma_password:
        raise ValueError("Le password non coincidono.")

    with db_session() as s:
        exists = s.execute(select(Utente).where(Utente.username == username)).scalar_one_or_none()
        if exists:
            raise ValueError("Username già registrato.")

        u = Utente(
            nome=nome,
            username=username,
            password_hash=hash_password(password),
            is_admin=is_admin,
            is_active=True,
            professione=professione,
            indirizzo=indirizzo,
            data_nascita=data_nascita,
            pix=pix,
        )
        s.add(u)
        s.flush()
        return utente_flat(u)


def autentica(username: str, password: str) -> Utente | None:
    username = _normalizza_username(username)
    with db_session() as s:
        u = s.execute(select(Utente).where(Utente.username == username)).scalar_one_or_none()
        if not u or not u.is_active:
            return None
        if not verify_password(password, u.password_hash):
            return None
        return u


def get_utente_by_id(user_id: int) -> Utente | None:
    with db_session() as s:
        return s.get(Utente, user_id)


def get_utente_by_username(username: str) -> Utente | None:
    with db_session() as s:
        return s.execute(
            select(Utente).where(Utente.username == _normalizza_username(username))
        ).scalar_one_or_none()


def lista_utenti_flat() -> list[dict[str, Any]]:
    with db_session() as s:
        return [utente_flat(u) for u in s.scalars(select(Utente).order_by(Utente.nome))]


def get_utente_flat(user_id: int) -> dict[str, Any] | None:
    u = get_utente_by_id(user_id)
    return utente_flat(u) if u else None


def aggiorna_utente(user_id: int, dati: dict[str, Any], da_admin: bool = False) -> dict[str, Any] | None:
    """
    Aggiornamento parziale del profilo.
    I campi password vengono ignorati (c'è cambia_password); is_admin/is_active solo da admin.
    """
    consentiti = CAMPI_PROFILO + (CAMPI_SOLO_ADMIN if da_admin else ())

    with db_session() as s:
        u = s.get(Utente, user_id)
        if not u:
            return None
        era_admin_attivo = u.is_admin and u.is_active

        for campo, valore in dati.items():
            if campo not in consentiti:
                continue
            if campo == "username":
                valore = _normalizza_username(valore)
                if not valore:
                    raise ValueError("Username obbligatorio.")
                altro = s.execute(select(Utente.id).where(Utente.username == valore)).scalar_one_or_none()
                if altro is not None and altro != user_id:
                    raise ValueError("Username già registrato.")
            elif campo == "nome":
                valore = (valore or "").strip()
                if not valore:
                    raise ValueError("Nome obbligatorio.")
            elif campo in CAMPI_SOLO_ADMIN and valore is None:
                continue
            setattr(u, campo, valore)

        if era_admin_attivo and not (u.is_admin and u.is_active):
            _verifica_altri_admin(s, user_id)

        s.flush()
        return utente_flat(u)


def _verifica_altri_admin(s, user_id: int) -> None:
    """Deve restare almeno un amministratore attivo oltre a user_id."""
    altri = s.execute(
        select(func.count(Utente.id)).where(
            Utente.is_admin.is_(True), Utente.is_active.is_(True), Utente.id != user_id
        )
    ).scalar_one()
    if altri == 0:
        raise ValueError("Deve esistere almeno un amministratore attivo.")


def cambia_password(
    user_id: int,
    nuova_password: str,
    conferma_password: str,
    password_attuale: str | None = None,
    da_admin: bool = False,
) -> bool:
    if not nuova_password:
        raise ValueError("La nuova password è obbligatoria.")
    if nuova_password != conferma_password:
        raise ValueError("Le password non coincidono.")

    with db_session() as s:
        u = s.get(Utente, user_id)
        if not u:
            return False
        if not da_admin and not verify_password(password_attuale or "", u.password_hash):
            raise ValueError("Password attuale errata.")
        u.password_hash = hash_password(nuova_password)
        return True


def elimina_utente(user_id: int, richiedente_id: int) -> bool:
    if user_id == richiedente_id:
        raise ValueError("Non puoi eliminare il tuo stesso utente.")

    with db_session() as s:
        u = s.get(Utente, user_id)
        if not u:
            return False

        in_uso = s.execute(select(Appuntamento.id).where(Appuntamento.utente_id == user_id).limit(1)).first()
        if in_uso:
            raise ValueError("Utente con appuntamenti registrati: non eliminabile.")
        if u.is_admin and u.is_active:
            _verifica_altri_admin(s, user_id)

        s.delete(u)
        return True


# =========================
# Sessioni (cookie firmato + riga su DB)
# =========================
def apri_sessione(user_id: int) -> str:
    with db_session() as s:
        now = utc_now()
        # pulizia sessioni scadute
        s.execute(delete(Sessione).where(Sessione.scade_il <= now))

        sess = Sessione(utente_id=user_id, scade_il=now + timedelta(minutes=SESSION_EXPIRE_MINUTES))
        s.add(sess)
        s.flush()
        return create_session_token(user_id, sess.id, expire=sess.scade_il)


def utente_da_token(token: str) -> Utente | None:
    claims = get_session_claims(token)
    if not claims:
        return None
    user_id, session_id = claims

    with db_session() as s:
        sess = s.get(Sessione, session_id)
        if not sess or sess.utente_id != user_id or sess.scade_il <= utc_now():
            return None
        u = s.get(Utente, user_id)
        if not u or not u.is_active:
            return None
        return u


def chiudi_sessione(token: str) -> bool:
    claims = get_session_claims(token)
    if not claims:
        return False

    with db_session() as s:
        sess = s.get(Sessione, claims[1])
        if not sess:
            return False
        s.delete(sess)
        return True
