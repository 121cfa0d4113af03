"""Test viste calendario."""
from datetime import date

import pytest

from centro_aba import calendario


def _app(id_, inizio, tipo_id=1, paziente_nome="Anna"):
    return {
        "id": id_,
        "utente_id": 1,
        "paziente_id": 5,
        "tipo_trattamento_id": tipo_id,
        "inizio": inizio,
        "fine": inizio,
        "paziente_nome": paziente_nome,
        "utente_nome": "Giulia",
        "tipo_nome": "Terapia ABA",
    }


def test_settimana_inizia_di_domenica():
    # 19/10/2026 è un lunedì
    assert calendario.inizio_settimana(date(2026, 10, 19)) == date(2026, 10, 18)
    assert calendario.inizio_settimana(date(2026, 10, 18)) == date(2026, 10, 18)


def test_intervallo_mese_copre_settimane_intere():
    start, end = calendario.intervallo("mese", date(2026, 10, 19))

    assert start == date(2026, 9, 27)
    assert end == date(2026, 10, 31)


def test_intervallo_vista_non_valida():
    with pytest.raises(ValueError):
        calendario.intervallo("anno", date(2026, 10, 19))


def test_naviga_mese_limita_il_giorno():
    assert calendario.naviga("mese", date(2026, 1, 31)) == date(2026, 2, 28)
    assert calendario.naviga("mese", date(2026, 1, 15), -1) == date(2025, 12, 15)


def test_naviga_settimana_e_giorno():
    assert calendario.naviga("settimana", date(2026, 10, 19)) == date(2026, 10, 26)
    assert calendario.naviga("giorno", date(2026, 10, 19), -1) == date(2026, 10, 18)


def test_colore_per_tipo_ciclico():
    assert calendario.colore_tipo(7) == calendario.COLORI[1]
    assert calendario.colore_tipo(6) == calendario.COLORI[0]


def test_costruisci_calendario_mese():
    items = [
        _app(1, "2026-10-19T14:00:00"),
        _app(2, "2026-10-19T09:00:00", tipo_id=2),
        _app(3, "2026-11-20T09:00:00"),
    ]

    cal = calendario.costruisci_calendario("mese", date(2026, 10, 19), items)

    assert len(cal["giorni"]) == 35
    assert cal["precedente"] == "2026-09-19"
    assert cal["successivo"] == "2026-11-19"
    assert cal["giorni"][0] == {"data": "2026-09-27", "nel_periodo": False, "eventi": []}

    giorno = next(g for g in cal["giorni"] if g["data"] == "2026-10-19")
    assert [e["id"] for e in giorno["eventi"]] == [2, 1]
    assert giorno["eventi"][0]["colore"] == calendario.colore_tipo(2)
    assert giorno["eventi"][0]["titolo"] == "Anna"


def test_costruisci_calendario_giorno():
    cal = calendario.costruisci_calendario("giorno", date(2026, 10, 19), [_app(1, "2026-10-19T14:00:00", paziente_nome=None)])

    assert len(cal["giorni"]) == 1
    assert cal["giorni"][0]["nel_periodo"] is True
    assert cal["giorni"][0]["eventi"][0]["titolo"] == "Paziente #5"
