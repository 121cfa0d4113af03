"""Test calendario, dashboard, report ed export via API."""
import time
from datetime import date, datetime, timedelta, timezone
from io import BytesIO

import pandas as pd
import pytest

from centro_aba import api_main
from centro_aba.services import adesso_locale


@pytest.fixture
def dati(admin_client, staff_user):
    """Due pazienti e tre appuntamenti di ottobre 2026 con prezzi diversi."""
    tipi = {t["codice"]: t["id"] for t in admin_client.get("/api/tipi-trattamento").json()}
    anna = admin_client.post("/api/pazienti", json={"nome": "Anna Rossi"}).json()
    bruno = admin_client.post("/api/pazienti", json={"nome": "Bruno Neri"}).json()

    for paziente, tipo, inizio, prezzo in (
        (anna, "ABA", "2026-10-05T09:00:00", "100"),
        (anna, "ABA", "2026-10-19T09:00:00", "100"),
        (bruno, "VAL", "2026-10-19T14:00:00", "250.5"),
    ):
        inizio_dt = datetime.fromisoformat(inizio)
        r = admin_client.post(
            "/api/appuntamenti",
            json={
                "utente_id": staff_user["id"],
                "paziente_id": paziente["id"],
                "tipo_trattamento_id": tipi[tipo],
                "inizio": inizio,
                "fine": (inizio_dt + timedelta(hours=1)).isoformat(),
                "prezzo": prezzo,
            },
        )
        assert r.status_code == 201, r.text

    return {"anna": anna, "bruno": bruno, "tipi": tipi}


def test_calendario_mese(admin_client, dati):
    r = admin_client.get("/api/calendario", params={"vista": "mese", "data": "2026-10-19"})

    assert r.status_code == 200
    cal = r.json()
    assert cal["inizio"] == "2026-09-27"
    assert cal["fine"] == "2026-10-31"
    giorno = next(g for g in cal["giorni"] if g["data"] == "2026-10-19")
    assert [e["titolo"] for e in giorno["eventi"]] == ["Anna Rossi", "Bruno Neri"]


def test_calendario_vista_non_valida(admin_client):
    r = admin_client.get("/api/calendario", params={"vista": "anno", "data": "2026-10-19"})

    assert r.status_code == 400


def test_calendario_filtrato_per_professionista(admin_client, dati):
    admin_id = admin_client.get("/api/me").json()["id"]

    cal = admin_client.get(
        "/api/calendario", params={"vista": "settimana", "data": "2026-10-19", "utente_id": admin_id}
    ).json()

    assert all(not g["eventi"] for g in cal["giorni"])
    assert len(cal["giorni"]) == 7


def test_riepilogo(admin_client, dati):
    r = admin_client.get("/api/report/riepilogo", params={"riferimento": "2026-10-31"})

    assert r.status_code == 200
    rep = r.json()
    assert rep["totale_appuntamenti"] == 3
    assert rep["fatturato_totale"] == "450.50"
    assert [t["nome"] for t in rep["per_tipo"]] == ["Terapia ABA", "Valutazione Iniziale"]
    assert rep["per_paziente"][0] == {"paziente_id": dati["anna"]["id"], "nome": "Anna Rossi", "conteggio": 2}
    assert rep["per_mese"][-1] == {"etichetta": "ott/26", "anno": 2026, "mese": 10, "conteggio": 3}
    assert rep["fatturato_per_mese"][-1]["totale"] == "450.50"


def test_riepilogo_filtrato_per_paziente(admin_client, dati):
    rep = admin_client.get(
        "/api/report/riepilogo", params={"paziente_id": dati["bruno"]["id"], "riferimento": "2026-10-31"}
    ).json()

    assert rep["totale_appuntamenti"] == 1
    assert rep["fatturato_totale"] == "250.50"


def test_dashboard(staff_client, dati):
    r = staff_client.get("/api/dashboard")

    assert r.status_code == 200
    d = r.json()
    assert d["totale_appuntamenti"] == 3
    assert d["totale_pazienti"] == 2
    assert len(d["prossimi"]) + len(d["recenti"]) == 3
    assert len(d["per_mese"]) == 6


def test_export_xlsx(admin_client, dati):
    r = admin_client.get("/api/export/xlsx", params={"dal": "2026-10-10", "al": "2026-10-31"})

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/vnd.openxmlformats")
    oggi = adesso_locale().strftime("%d-%m-%Y")
    assert f"report-appuntamenti-{oggi}.xlsx" in r.headers["content-disposition"]

    df = pd.read_excel(BytesIO(r.content), engine="openpyxl")
    assert len(df) == 2
    assert set(df["Paziente"]) == {"Anna Rossi", "Bruno Neri"}


def test_export_pdf(admin_client, dati):
    r = admin_client.get("/api/export/pdf", params={"paziente_id": dati["anna"]["id"]})

    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_export_formato_sconosciuto(admin_client):
    assert admin_client.get("/api/export/csv").status_code == 404


def test_export_richiede_login(anon_client):
    assert anon_client.get("/api/export/pdf").status_code == 401


def test_export_pdf_paziente_con_markup(admin_client):
    p = admin_client.post("/api/pazienti", json={"nome": "Luca <b>"}).json()

    r = admin_client.get("/api/export/pdf", params={"paziente_id": p["id"]})

    assert r.status_code == 200
    assert r.content.startswith(b"%PDF")


def test_filtri_export_periodo_aperto():
    assert api_main._filtri_export(None, None, date(2026, 10, 1), None) == {"Periodo": "dal 01/10/2026"}
    assert api_main._filtri_export(None, None, None, date(2026, 10, 31)) == {"Periodo": "fino al 31/10/2026"}
    assert api_main._filtri_export(None, None, date(2026, 10, 1), date(2026, 10, 31)) == {
        "Periodo": "01/10/2026 a 31/10/2026"
    }


@pytest.fixture
def server_in_utc(monkeypatch):
    """Orologio del processo in UTC, diverso dal fuso della clinica."""
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_dashboard_usa_ora_della_clinica(server_in_utc, admin_client, staff_user):
    p = admin_client.post("/api/pazienti", json={"nome": "Anna Rossi"}).json()
    tipo_id = admin_client.get("/api/tipi-trattamento").json()[0]["id"]
    inizio = datetime.now(timezone.utc) + timedelta(minutes=30)
    r = admin_client.post(
        "/api/appuntamenti",
        json={
            "utente_id": staff_user["id"],
            "paziente_id": p["id"],
            "tipo_trattamento_id": tipo_id,
            "inizio": inizio.isoformat(),
            "fine": (inizio + timedelta(hours=1)).isoformat(),
        },
    )
    assert r.status_code == 201

    d = admin_client.get("/api/dashboard").json()

    assert len(d["prossimi"]) == 1
    assert d["recenti"] == []


def test_calendario_predefinito_sul_giorno_della_clinica(server_in_utc, admin_client):
    cal = admin_client.get("/api/calendario", params={"vista": "giorno"}).json()

    assert cal["riferimento"] == adesso_locale().date().isoformat()
