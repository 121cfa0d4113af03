from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.orm import joinedload

from .config import TIMEZONE
from .db import Base, db_session, engine
from .models import (
    Appuntamento,
    Paziente,
    PrezzoPaziente,
    PrezzoProfessionista,
    TipoTrattamento,
    Utente,
)
from .pricing import prezzo_suggerito
from .report import filtra_appuntamenti

# Sentinel: prezzo non indicato -> calcolato con la regola paziente/professionista/listino
PREZZO_AUTOMATICO: Any = object()

CAMPI_PAZIENTE = ("nome", "indirizzo", "data_nascita", "padre", "madre", "email", "telefono")


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Crea le tabelle se non esistono."""
    Base.metadata.create_all(bind=engine)


# =========================
# Helper
# =========================
def prezzo_str(prezzo: Decimal | None) -> str | None:
    return f"{prezzo:.2f}" if prezzo is not None else None


def valida_prezzo(valore: Any) -> Decimal | None:
    if valore is None or valore == "":
        return None
    try:
        prezzo = Decimal(str(valore)).quantize(Decimal("0.01"))
    except InvalidOperation:
        raise ValueError("Prezzo non valido.") from None
    if prezzo < 0:
        raise ValueError("Il prezzo non può essere negativo.")
    return prezzo


def ora_locale(dt: datetime) -> datetime:
    """Le date con fuso vengono riportate all'ora locale della clinica (naive)."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(ZoneInfo(TIMEZONE)).replace(tzinfo=None)


def adesso_locale() -> datetime:
    """Ora corrente della clinica (naive), confrontabile con gli appuntamenti salvati."""
    return datetime.now(ZoneInfo(TIMEZONE)).replace(tzinfo=None)


def _testo_obbligatorio(valore: str | None, etichetta: str) -> str:
    valore = (valore or "").strip()
    if not valore:
        raise ValueError(f"{etichetta} obbligatorio.")
    return valore


# =========================
# Tipi di trattamento
# =========================
def tipo_flat(t: TipoTrattamento) -> dict[str, Any]:
    return {
        "id": t.id,
        "codice": t.codice,
        "nome": t.nome,
        "descrizione": t.descrizione,
        "prezzo": prezzo_str(t.prezzo),
    }


def lista_tipi_flat() -> list[dict]:
    with db_session() as s:
        return [tipo_flat(t) for t in s.scalars(select(TipoTrattamento).order_by(TipoTrattamento.nome))]


def get_tipo_flat(tipo_id: int) -> dict | None:
    with db_session() as s:
        t = s.get(TipoTrattamento, tipo_id)
        return tipo_flat(t) if t else None


def _codice_libero(s, codice: str, escludi_id: int | None = None) -> None:
    esistente = s.execute(select(TipoTrattamento.id).where(TipoTrattamento.codice == codice)).scalar_one_or_none()
    if esistente is not None and esistente != escludi_id:
        raise ValueError("Esiste già un tipo di trattamento con questo codice.")


def crea_tipo(codice: str, nome: str, descrizione: str | None = None, prezzo: Any = None) -> dict:
    codice = _testo_obbligatorio(codice, "Codice").upper()
    nome = _testo_obbligatorio(nome, "Nome")
    prezzo = valida_prezzo(prezzo)

    with db_session() as s:
        _codice_libero(s, codice)
        t = TipoTrattamento(codice=codice, nome=nome, descrizione=descrizione, prezzo=prezzo)
        s.add(t)
        s.flush()
        return tipo_flat(t)


def aggiorna_tipo(tipo_id: int, dati: dict[str, Any]) -> dict | None:
    with db_session() as s:
        t = s.get(TipoTrattamento, tipo_id)
        if not t:
            return None

        if "codice" in dati:
            codice = _testo_obbligatorio(dati["codice"], "Codice").upper()
            _codice_libero(s, codice, escludi_id=tipo_id)
            t.codice = codice
        if "nome" in dati:
            t.nome = _testo_obbligatorio(dati["nome"], "Nome")
        if "descrizione" in dati:
            t.descrizione = dati["descrizione"]
        if "prezzo" in dati:
            t.prezzo = valida_prezzo(dati["prezzo"])

        s.flush()
        return tipo_flat(t)


def elimina_tipo(tipo_id: int) -> bool:
    with db_session() as s:
        t = s.get(TipoTrattamento, tipo_id)
        if not t:
            return False

        for model in (Appuntamento, PrezzoProfessionista, PrezzoPaziente):
            if s.execute(select(model.id).where(model.tipo_trattamento_id == tipo_id).limit(1)).first():
                raise ValueError("Tipo di trattamento in uso: non eliminabile.")

        s.delete(t)
        return True


# =========================
# Pazienti
# =========================
def paziente_flat(p: Paziente) -> dict[str, Any]:
    return {
        "id": p.id,
        "nome": p.nome,
        "indirizzo": p.indirizzo,
        "data_nascita": p.data_nascita.isoformat() if p.data_nascita else None,
        "padre": p.padre,
        "madre": p.madre,
        "email": p.email,
        "telefono": p.telefono,
    }


def lista_pazienti_flat() -> list[dict]:
    with db_session() as s:
        return [paziente_flat(p) for p in s.scalars(select(Paziente).order_by(Paziente.nome))]


def get_paziente_flat(paziente_id: int) -> dict | None:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        return paziente_flat(p) if p else None


def crea_paziente(
    nome: str,
    indirizzo: str | None = None,
    data_nascita: date | None = None,
    padre: str | None = None,
    madre: str | None = None,
    email: str | None = None,
    telefono: str | None = None,
) -> dict:
    with db_session() as s:
        p = Paziente(
            nome=_testo_obbligatorio(nome, "Nome"),
            indirizzo=indirizzo,
            data_nascita=data_nascita,
            padre=padre,
            madre=madre,
            email=email,
            telefono=telefono,
        )
        s.add(p)
        s.flush()
        return paziente_flat(p)


def aggiorna_paziente(paziente_id: int, dati: dict[str, Any]) -> dict | None:
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p:
            return None

        for campo, valore in dati.items():
            if campo not in CAMPI_PAZIENTE:
                continue
            if campo == "nome":
                valore = _testo_obbligatorio(valore, "Nome")
            setattr(p, campo, valore)

        s.flush()
        return paziente_flat(p)


def elimina_paziente(paziente_id: int) -> bool:
    """Elimina il paziente e i suoi prezzi concordati; rifiuta se ha appuntamenti."""
    with db_session() as s:
        p = s.get(Paziente, paziente_id)
        if not p:
            return False

        if s.execute(select(Appuntamento.id).where(Appuntamento.paziente_id == paziente_id).limit(1)).first():
            raise ValueError("Paziente con appuntamenti registrati: non eliminabile.")

        s.delete(p)
        return True


# =========================
# Appuntamenti
# =========================
def appuntamento_flat(a: Appuntamento) -> dict[str, Any]:
    return {
        "id": a.id,
        "utente_id": a.utente_id,
        "paziente_id": a.paziente_id,
        "tipo_trattamento_id": a.tipo_trattamento_id,
        "inizio": a.inizio.isoformat(),
        "fine": a.fine.isoformat(),
        "descrizione": a.descrizione,
        "prezzo": prezzo_str(a.prezzo),
        "utente_nome": a.utente.nome if a.utente else None,
        "paziente_nome": a.paziente.nome if a.paziente else None,
        "tipo_nome": a.tipo_trattamento.nome if a.tipo_trattamento else None,
    }


def _query_appuntamenti():
    return select(Appuntamento).options(
        joinedload(Appuntamento.utente),
        joinedload(Appuntamento.paziente),
        joinedload(Appuntamento.tipo_trattamento),
    )


def lista_appuntamenti_flat(
    utente_id: int | None = None,
    paziente_id: int | None = None,
    dal: date | None = None,
    al: date | None = None,
) -> list[dict]:
    with db_session() as s:
        tutti = [appuntamento_flat(a) for a in s.scalars(_query_appuntamenti().order_by(Appuntamento.inizio.asc()))]
    return filtra_appuntamenti(tutti, utente_id=utente_id, paziente_id=paziente_id, dal=dal, al=al)


def get_appuntamento_flat(appuntamento_id: int) -> dict | None:
    with db_session() as s:
        a = s.scalars(_query_appuntamenti().where(Appuntamento.id == appuntamento_id)).first()
        return appuntamento_flat(a) if a else None


def _verifica_riferimenti(s, utente_id: int, paziente_id: int, tipo_trattamento_id: int) -> None:
    if not s.get(Utente, utente_id):
        raise ValueError("Professionista inesistente.")
    if not s.get(Paziente, paziente_id):
        raise ValueError("Paziente inesistente.")
    if not s.get(TipoTrattamento, tipo_trattamento_id):
        raise ValueError("Tipo di trattamento inesistente.")


def _verifica_orari(inizio: datetime, fine: datetime) -> None:
    if fine <= inizio:
        raise ValueError("La fine dell'appuntamento deve essere successiva all'inizio.")


def crea_appuntamento(
    utente_id: int,
    paziente_id: int,
    tipo_trattamento_id: int,
    inizio: datetime,
    fine: datetime,
    descrizione: str | None = None,
    prezzo: Any = PREZZO_AUTOMATICO,
) -> dict:
    inizio, fine = ora_locale(inizio), ora_locale(fine)
    _verifica_orari(inizio, fine)

    with db_session() as s:
        _verifica_riferimenti(s, utente_id, paziente_id, tipo_trattamento_id)

        if prezzo is PREZZO_AUTOMATICO:
            prezzo = prezzo_suggerito(paziente_id, utente_id, tipo_trattamento_id, s).prezzo
        else:
            prezzo = valida_prezzo(prezzo)

        a = Appuntamento(
            utente_id=utente_id,
            paziente_id=paziente_id,
            tipo_trattamento_id=tipo_trattamento_id,
            inizio=inizio,
            fine=fine,
            descrizione=descrizione,
            prezzo=prezzo,
        )
        s.add(a)
        s.flush()
        s.refresh(a)
        return appuntamento_flat(a)


def aggiorna_appuntamento(appuntamento_id: int, dati: dict[str, Any]) -> dict | None:
    with db_session() as s:
        a = s.get(Appuntamento, appuntamento_id)
        if not a:
            return None

        utente_id = dati.get("utente_id") or a.utente_id
        paziente_id = dati.get("paziente_id") or a.paziente_id
        tipo_id = dati.get("tipo_trattamento_id") or a.tipo_trattamento_id
        inizio = ora_locale(dati["inizio"]) if dati.get("inizio") else a.inizio
        fine = ora_locale(dati["fine"]) if dati.get("fine") else a.fine

        _verifica_orari(inizio, fine)
        _verifica_riferimenti(s, utente_id, paziente_id, tipo_id)

        a.utente_id, a.paziente_id, a.tipo_trattamento_id = utente_id, paziente_id, tipo_id
        a.inizio, a.fine = inizio, fine
        if "descrizione" in dati:
            a.descrizione = dati["descrizione"]
        if "prezzo" in dati:
            a.prezzo = valida_prezzo(dati["prezzo"])

        s.flush()
        s.expire(a, ["utente", "paziente", "tipo_trattamento"])
        return appuntamento_flat(a)


def elimina_appuntamento(appuntamento_id: int) -> bool:
    with db_session() as s:
        a = s.get(Appuntamento, appuntamento_id)
        if not a:
            return False
        s.delete(a)
        return True


# =========================
# Prezzi specifici (professionista / paziente)
# =========================
def prezzo_professionista_flat(r: PrezzoProfessionista) -> dict[str, Any]:
    return {
        "id": r.id,
        "utente_id": r.utente_id,
        "tipo_trattamento_id": r.tipo_trattamento_id,
        "prezzo": prezzo_str(r.prezzo),
    }


def prezzo_paziente_flat(r: PrezzoPaziente) -> dict[str, Any]:
    return {
        "id": r.id,
        "paziente_id": r.paziente_id,
        "tipo_trattamento_id": r.tipo_trattamento_id,
        "prezzo": prezzo_str(r.prezzo),
    }


def lista_prezzi_professionista(utente_id: int) -> list[dict]:
    with db_session() as s:
        q = select(PrezzoProfessionista).where(PrezzoProfessionista.utente_id == utente_id).order_by(PrezzoProfessionista.id)
        return [prezzo_professionista_flat(r) for r in s.scalars(q)]


def lista_prezzi_paziente(paziente_id: int) -> list[dict]:
    with db_session() as s:
        q = select(PrezzoPaziente).where(PrezzoPaziente.paziente_id == paziente_id).order_by(PrezzoPaziente.id)
        return [prezzo_paziente_flat(r) for r in s.scalars(q)]


def crea_prezzo_professionista(utente_id: int, tipo_trattamento_id: int, prezzo: Any = None) -> dict:
    prezzo = valida_prezzo(prezzo)
    with db_session() as s:
        if not s.get(Utente, utente_id):
            raise ValueError("Professionista inesistente.")
        if not s.get(TipoTrattamento, tipo_trattamento_id):
            raise ValueError("Tipo di trattamento inesistente.")
        doppio = s.execute(
            select(PrezzoProfessionista.id).where(
                PrezzoProfessionista.utente_id == utente_id,
                PrezzoProfessionista.tipo_trattamento_id == tipo_trattamento_id,
            )
        ).first()
        if doppio:
            raise ValueError("Prezzo già definito per questo professionista e tipo di trattamento.")

        r = PrezzoProfessionista(utente_id=utente_id, tipo_trattamento_id=tipo_trattamento_id, prezzo=prezzo)
        s.add(r)
        s.flush()
        return prezzo_professionista_flat(r)


def crea_prezzo_paziente(paziente_id: int, tipo_trattamento_id: int, prezzo: Any = None) -> dict:
    prezzo = valida_prezzo(prezzo)
    with db_session() as s:
        if not s.get(Paziente, paziente_id):
            raise ValueError("Paziente inesistente.")
        if not s.get(TipoTrattamento, tipo_trattamento_id):
            raise ValueError("Tipo di trattamento inesistente.")
        doppio = s.execute(
            select(PrezzoPaziente.id).where(
                PrezzoPaziente.paziente_id == paziente_id,
                PrezzoPaziente.tipo_trattamento_id == tipo_trattamento_id,
            )
        ).first()
        if doppio:
            raise ValueError("Prezzo già definito per questo paziente e tipo di trattamento.")

        r = PrezzoPaziente(paziente_id=paziente_id, tipo_trattamento_id=tipo_trattamento_id, prezzo=prezzo)
        s.add(r)
        s.flush()
        return prezzo_paziente_flat(r)


def aggiorna_prezzo_professionista(relazione_id: int, prezzo: Any) -> dict | None:
    with db_session() as s:
        r = s.get(PrezzoProfessionista, relazione_id)
        if not r:
            return None
        r.prezzo = valida_prezzo(prezzo)
        return prezzo_professionista_flat(r)


def aggiorna_prezzo_paziente(relazione_id: int, prezzo: Any) -> dict | None:
    with db_session() as s:
        r = s.get(PrezzoPaziente, relazione_id)
        if not r:
            return None
        r.prezzo = valida_prezzo(prezzo)
        return prezzo_paziente_flat(r)


def elimina_prezzo_professionista(relazione_id: int) -> bool:
    with db_session() as s:
        r = s.get(PrezzoProfessionista, relazione_id)
        if not r:
            return False
        s.delete(r)
        return True


def elimina_prezzo_paziente(relazione_id: int) -> bool:
    with db_session() as s:
        r = s.get(PrezzoPaziente, relazione_id)
        if not r:
            return False
        s.delete(r)
        return True
