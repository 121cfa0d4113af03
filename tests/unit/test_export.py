"""Test export Excel / PDF."""
from datetime import date
from io import BytesIO

import pandas as pd

from centro_aba import export

ITEMS = [
    {
        "id": 1,
        "utente_id": 1,
        "paziente_id": 2,
        "tipo_trattamento_id": 3,
        "inizio": "2026-10-19T09:30:00",
        "fine": "2026-10-19T10:30:00",
        "descrizione": "Prima seduta",
        "prezzo": "1234.5",
        "utente_nome": "Giulia Verdi",
        "paziente_nome": "Anna Rossi",
        "tipo_nome": "Terapia ABA",
    },
    {
        "id": 2,
        "utente_id": 1,
        "paziente_id": 2,
        "tipo_trattamento_id": 3,
        "inizio": "2026-10-20T09:30:00",
        "fine": "2026-10-20T10:30:00",
        "descrizione": None,
        "prezzo": None,
        "utente_nome": "Giulia Verdi",
        "paziente_nome": "Anna Rossi",
        "tipo_nome": "Terapia ABA",
    },
]


def test_formatta_prezzo_brasiliano():
    assert export.formatta_prezzo("1234.5") == "R$ 1.234,50"
    assert export.formatta_prezzo("0") == "R$ 0,00"
    assert export.formatta_prezzo(None) == ""


def test_nome_file_con_data():
    assert export.nome_file("pdf", date(2026, 3, 5)) == "report-appuntamenti-05-03-2026.pdf"


def test_esporta_xlsx_leggibile():
    contenuto = export.esporta_xlsx(ITEMS)

    df = pd.read_excel(BytesIO(contenuto), sheet_name="Appuntamenti", engine="openpyxl", dtype=str)
    assert list(df.columns) == export.COLONNE_XLSX
    assert len(df) == 2
    assert df.iloc[0]["Data"] == "19/10/2026"
    assert df.iloc[0]["Orario"] == "09:30"
    assert df.iloc[0]["Prezzo"] == "R$ 1.234,50"
    assert df.iloc[0]["Paziente"] == "Anna Rossi"


def test_esporta_xlsx_vuoto_ha_intestazioni():
    df = pd.read_excel(BytesIO(export.esporta_xlsx([])), engine="openpyxl")

    assert list(df.columns) == export.COLONNE_XLSX
    assert df.empty


def test_esporta_pdf():
    contenuto = export.esporta_pdf(ITEMS, {"Paziente": "Anna Rossi"})

    assert contenuto.startswith(b"%PDF")
    assert len(contenuto) > 1000


def test_esporta_pdf_molte_pagine():
    """Il piè di pagina numerato richiede il totale pagine: più pagine devono funzionare."""
    contenuto = export.esporta_pdf(ITEMS * 60)

    assert contenuto.startswith(b"%PDF")
    # almeno due "/Type /Page" più il nodo "/Type /Pages"
    assert contenuto.count(b"/Type /Page") >= 3


def test_esporta_pdf_con_markup_nei_filtri():
    """Nomi con caratteri speciali finiscono nel PDF come testo, non come markup."""
    contenuto = export.esporta_pdf(
        ITEMS, {"Paziente": "Luca <b>", "Professionista": "Ana <font color=x> & C."}
    )

    assert contenuto.startswith(b"%PDF")
