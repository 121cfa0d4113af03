"""
Risoluzione del prezzo di un appuntamento.

Ordine di priorità (vince il primo che ha un prezzo valorizzato):
1. prezzo concordato per il paziente su quel tipo di trattamento
2. prezzo del professionista su quel tipo di trattamento
3. prezzo di listino del tipo di trattamento
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy import select

from .db import db_session
from .models import PrezzoPaziente, PrezzoProfessionista, TipoTrattamento

ORIGINE_PAZIENTE = "paziente"
ORIGINE_PROFESSIONISTA = "professionista"
ORIGINE_TIPO = "tipo"


@dataclass(frozen=True)
class PrezzoRisolto:
    prezzo: Decimal | None
    origine: str | None


def _decimale(valore: Any) -> Decimal | None:
    if valore is None or valore == "":
        return None
    return Decimal(str(valore)).quantize(Decimal("0.01"))


def risolvi_prezzo(
    paziente_id: int,
    utente_id: int,
    tipo_trattamento_id: int,
    prezzi_paziente: Iterable[Mapping[str, Any]],
    prezzi_professionista: Iterable[Mapping[str, Any]],
    tipi: Iterable[Mapping[str, Any]],
) -> PrezzoRisolto:
    # Uno zero esplicito è un prezzo valido, None no.
    for rel in prezzi_paziente:
        if rel["paziente_id"] == paziente_id and rel["tipo_trattamento_id"] == tipo_trattamento_id:
            prezzo = _decimale(rel.get("prezzo"))
            if prezzo is not None:
                return PrezzoRisolto(prezzo, ORIGINE_PAZIENTE)

    for rel in prezzi_professionista:
        if rel["utente_id"] == utente_id and rel["tipo_trattamento_id"] == tipo_trattamento_id:
            prezzo = _decimale(rel.get("prezzo"))
            if prezzo is not None:
                return PrezzoRisolto(prezzo, ORIGINE_PROFESSIONISTA)

    for tipo in tipi:
        if tipo["id"] == tipo_trattamento_id:
            prezzo = _decimale(tipo.get("prezzo"))
            if prezzo is not None:
                return PrezzoRisolto(prezzo, ORIGINE_TIPO)

    return PrezzoRisolto(None, None)


def prezzo_suggerito(paziente_id: int, utente_id: int, tipo_trattamento_id: int, s=None) -> PrezzoRisolto:
    """Stessa regola di risolvi_prezzo, con i dati letti dal DB (sessione opzionale)."""
    if s is None:
        with db_session() as s:
            return prezzo_suggerito(paziente_id, utente_id, tipo_trattamento_id, s)

    prezzi_paziente = [
        {"paziente_id": r.paziente_id, "tipo_trattamento_id": r.tipo_trattamento_id, "prezzo": r.prezzo}
        for r in s.execute(
            select(PrezzoPaziente.paziente_id, PrezzoPaziente.tipo_trattamento_id, PrezzoPaziente.prezzo).where(
                PrezzoPaziente.paziente_id == paziente_id,
                PrezzoPaziente.tipo_trattamento_id == tipo_trattamento_id,
            )
        )
    ]
    prezzi_professionista = [
        {"utente_id": r.utente_id, "tipo_trattamento_id": r.tipo_trattamento_id, "prezzo": r.prezzo}
        for r in s.execute(
            select(
                PrezzoProfessionista.utente_id, PrezzoProfessionista.tipo_trattamento_id, PrezzoProfessionista.prezzo
            ).where(
                PrezzoProfessionista.utente_id == utente_id,
                PrezzoProfessionista.tipo_trattamento_id == tipo_trattamento_id,
            )
        )
    ]
    tipi = [
        {"id": r.id, "prezzo": r.prezzo}
        for r in s.execute(select(TipoTrattamento.id, TipoTrattamento.prezzo).where(TipoTrattamento.id == tipo_trattamento_id))
    ]
    return risolvi_prezzo(paziente_id, utente_id, tipo_trattamento_id, prezzi_paziente, prezzi_professionista, tipi)
