from __future__ import annotations

import logging

from sqlalchemy import select

from .auth_security import hash_password
from .config import ADMIN_PASSWORD, ADMIN_USERNAME
from .db import db_session
from .models import TipoTrattamento, Utente

logger = logging.getLogger(__name__)

TIPI_BASE = [
    ("ABA", "Terapia ABA", "Sessione di terapia comportamentale ABA"),
    ("VAL", "Valutazione Iniziale", "Prima valutazione del paziente"),
    ("SOC", "Intervento Sociale", "Intervento sulle abilità sociali"),
]


def seed_base() -> None:
    """
    Popola dati minimi (idempotente):
    - amministratore iniziale
    - tipi di trattamento di base (senza prezzo di listino)
    """
    with db_session() as s:
        admin = s.execute(select(Utente).where(Utente.username == ADMIN_USERNAME)).scalar_one_or_none()
        if admin is None:
            s.add(
                Utente(
                    nome="Amministratore",
                    username=ADMIN_USERNAME,
                    password_hash=hash_password(ADMIN_PASSWORD),
                    is_admin=True,
                    professione="Amministratore del sistema",
                )
            )
            logger.warning("Creato utente amministratore iniziale '%s': cambiare la password.", ADMIN_USERNAME)

        for codice, nome, descrizione in TIPI_BASE:
            if s.execute(select(TipoTrattamento).where(TipoTrattamento.codice == codice)).scalar_one_or_none() is None:
                s.add(TipoTrattamento(codice=codice, nome=nome, descrizione=descrizione))
