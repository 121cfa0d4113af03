from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable

MESI_ABBR = ("gen", "feb", "mar", "apr", "mag", "giu", "lug", "ago", "set", "ott", "nov", "dic")


def _inizio(a: dict) -> datetime:
    v = a["inizio"]
    return v if isinstance(v, datetime) else datetime.fromisoformat(v)


def _prezzo(a: dict) -> Decimal:
    v = a.get("prezzo")
    return Decimal(str(v)) if v not in (None, "") else Decimal("0")


def _come_inizio_giorno(d: date | datetime) -> datetime:
    return d if isinstance(d, datetime) else datetime.combine(d, time.min)


def _come_fine_giorno(d: date | datetime) -> datetime:
    return d if isinstance(d, datetime) else datetime.combine(d, time.max)


def filtra_appuntamenti(
    items: Iterable[dict],
    utente_id: int | None = None,
    paziente_id: int | None = None,
    dal: date | datetime | None = None,
    al: date | datetime | None = None,
) -> list[dict]:
    """Filtro per professionista, paziente e periodo (estremi inclusi, su data di inizio)."""
    da = _come_inizio_giorno(dal) if dal else None
    fino = _come_fine_giorno(al) if al else None

    out = []
    for a in items:
        if utente_id is not None and a["utente_id"] != utente_id:
            continue
        if paziente_id is not None and a["paziente_id"] != paziente_id:
            continue
        inizio = _inizio(a)
        if da and inizio < da:
            continue
        if fino and inizio > fino:
            continue
        out.append(a)
    return out


def per_tipo(items: list[dict], tipi: Iterable[dict]) -> list[dict]:
    risultato = []
    for t in tipi:
        n = sum(1 for a in items if a["tipo_trattamento_id"] == t["id"])
        if n > 0:
            risultato.append({"tipo_trattamento_id": t["id"], "nome": t["nome"], "conteggio": n})
    return risultato


def per_paziente(items: list[dict], pazienti: Iterable[dict], limite: int = 10) -> list[dict]:
    risultato = []
    for p in pazienti:
        n = sum(1 for a in items if a["paziente_id"] == p["id"])
        if n > 0:
            risultato.append({"paziente_id": p["id"], "nome": p["nome"], "conteggio": n})
    risultato.sort(key=lambda r: r["conteggio"], reverse=True)
    return risultato[:limite]


def ultimi_mesi(riferimento: date, mesi: int = 6) -> list[tuple[int, int]]:
    """(anno, mese) degli ultimi `mesi` mesi di calendario, dal più vecchio al mese di riferimento."""
    anno, mese = riferimento.year, riferimento.month
    out = []
    for _ in range(mesi):
        out.append((anno, mese))
        mese -= 1
        if mese == 0:
            anno, mese = anno - 1, 12
    return list(reversed(out))


def etichetta_mese(anno: int, mese: int) -> str:
    return f"{MESI_ABBR[mese - 1]}/{anno % 100:02d}"


def _del_mese(items: list[dict], anno: int, mese: int) -> list[dict]:
    return [a for a in items if _inizio(a).year == anno and _inizio(a).month == mese]


def per_mese(items: list[dict], riferimento: date, mesi: int = 6) -> list[dict]:
    return [
        {
            "etichetta": etichetta_mese(anno, mese),
            "anno": anno,
            "mese": mese,
            "conteggio": len(_del_mese(items, anno, mese)),
        }
        for anno, mese in ultimi_mesi(riferimento, mesi)
    ]


def fatturato_per_mese(items: list[dict], riferimento: date, mesi: int = 6) -> list[dict]:
    out = []
    for anno, mese in ultimi_mesi(riferimento, mesi):
        totale = sum((_prezzo(a) for a in _del_mese(items, anno, mese)), Decimal("0"))
        out.append(
            {
                "etichetta": etichetta_mese(anno, mese),
                "anno": anno,
                "mese": mese,
                "totale": f"{totale.quantize(Decimal('0.01')):.2f}",
            }
        )
    return out


def prossimi(items: list[dict], adesso: datetime, n: int = 3) -> list[dict]:
    futuri = [a for a in items if _inizio(a) > adesso]
    return sorted(futuri, key=_inizio)[:n]


def recenti(items: list[dict], adesso: datetime, n: int = 3) -> list[dict]:
    passati = [a for a in items if _inizio(a) <= adesso]
    return sorted(passati, key=_inizio, reverse=True)[:n]


def riepilogo(
    items: list[dict],
    tipi: Iterable[dict],
    pazienti: Iterable[dict],
    riferimento: date,
) -> dict[str, Any]:
    totale = sum((_prezzo(a) for a in items), Decimal("0"))
    return {
        "totale_appuntamenti": len(items),
        "fatturato_totale": f"{totale.quantize(Decimal('0.01')):.2f}",
        "per_tipo": per_tipo(items, tipi),
        "per_paziente": per_paziente(items, pazienti),
        "per_mese": per_mese(items, riferimento),
        "fatturato_per_mese": fatturato_per_mese(items, riferimento),
    }


def dashboard(items: list[dict], n_pazienti: int, adesso: datetime) -> dict[str, Any]:
    return {
        "totale_appuntamenti": len(items),
        "totale_pazienti": n_pazienti,
        "prossimi": prossimi(items, adesso),
        "recenti": recenti(items, adesso),
        "per_mese": per_mese(items, adesso.date()),
    }
