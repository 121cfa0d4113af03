from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Any

VISTE = ("mese", "settimana", "giorno")
COLORI = ("#FF6B6B", "#5B86E5", "#FFD966", "#5CBCAA", "#9C79F0", "#FF9F68")


def colore_tipo(tipo_trattamento_id: int) -> str:
    return COLORI[tipo_trattamento_id % len(COLORI)]


def inizio_settimana(giorno: date) -> date:
    # settimana domenica -> sabato
    return giorno - timedelta(days=(giorno.weekday() + 1) % 7)


def intervallo(vista: str, giorno: date) -> tuple[date, date]:
    """Primo e ultimo giorno (inclusi) mostrati dalla vista."""
    if vista == "giorno":
        return giorno, giorno
    if vista == "settimana":
        start = inizio_settimana(giorno)
        return start, start + timedelta(days=6)
    if vista == "mese":
        primo = giorno.replace(day=1)
        ultimo = giorno.replace(day=calendar.monthrange(giorno.year, giorno.month)[1])
        return inizio_settimana(primo), inizio_settimana(ultimo) + timedelta(days=6)
    raise ValueError(f"Vista non valida: {vista}")


def naviga(vista: str, giorno: date, passo: int = 1) -> date:
    """Sposta la data di riferimento di `passo` mesi/settimane/giorni."""
    if vista == "giorno":
        return giorno + timedelta(days=passo)
    if vista == "settimana":
        return giorno + timedelta(weeks=passo)
    if vista == "mese":
        indice = giorno.year * 12 + (giorno.month - 1) + passo
        anno, mese = divmod(indice, 12)
        mese += 1
        return date(anno, mese, min(giorno.day, calendar.monthrange(anno, mese)[1]))
    raise ValueError(f"Vista non valida: {vista}")


def evento(a: dict) -> dict[str, Any]:
    return {
        "id": a["id"],
        "titolo": a.get("paziente_nome") or f"Paziente #{a['paziente_id']}",
        "inizio": a["inizio"],
        "fine": a["fine"],
        "colore": colore_tipo(a["tipo_trattamento_id"]),
        "paziente": a.get("paziente_nome"),
        "professionista": a.get("utente_nome"),
        "tipo": a.get("tipo_nome") or f"Tipo #{a['tipo_trattamento_id']}",
    }


def costruisci_calendario(vista: str, giorno: date, appuntamenti: list[dict]) -> dict[str, Any]:
    """
    Modello della vista calendario: una cella per giorno con gli eventi ordinati per orario.
    Nella vista mensile i giorni fuori dal mese hanno nel_periodo=False.
    """
    start, end = intervallo(vista, giorno)

    per_giorno: dict[date, list[dict]] = {}
    for a in appuntamenti:
        g = datetime.fromisoformat(a["inizio"]).date()
        if start <= g <= end:
            per_giorno.setdefault(g, []).append(evento(a))

    giorni = []
    g = start
    while g <= end:
        eventi = sorted(per_giorno.get(g, []), key=lambda e: e["inizio"])
        giorni.append(
            {
                "data": g.isoformat(),
                "nel_periodo": g.month == giorno.month if vista == "mese" else True,
                "eventi": eventi,
            }
        )
        g += timedelta(days=1)

    return {
        "vista": vista,
        "riferimento": giorno.isoformat(),
        "inizio": start.isoformat(),
        "fine": end.isoformat(),
        "precedente": naviga(vista, giorno, -1).isoformat(),
        "successivo": naviga(vista, giorno, 1).isoformat(),
        "giorni": giorni,
    }
