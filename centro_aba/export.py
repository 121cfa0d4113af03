from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Any
from xml.sax.saxutils import escape

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .config import CURRENCY_SYMBOL, ORG_NAME
from .services import adesso_locale

COLONNE_XLSX = ["Data", "Orario", "Paziente", "Professionista", "Tipo di trattamento", "Prezzo", "Descrizione"]
COLONNE_PDF = ["Data", "Paziente", "Professionista", "Tipo di trattamento", "Prezzo"]

GIALLO = colors.Color(255 / 255, 217 / 255, 102 / 255)
GRIGIO_RIGHE = colors.Color(245 / 255, 245 / 255, 245 / 255)


def formatta_prezzo(valore: Any) -> str:
    """Formato pt-BR: R$ 1.234,56 (stringa vuota se il prezzo manca)."""
    if valore is None or valore == "":
        return ""
    testo = f"{Decimal(str(valore)):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{CURRENCY_SYMBOL} {testo}"


def formatta_data(d: date | datetime) -> str:
    return d.strftime("%d/%m/%Y")


def nome_file(estensione: str, oggi: date | None = None) -> str:
    oggi = oggi or adesso_locale().date()
    return f"report-appuntamenti-{oggi.strftime('%d-%m-%Y')}.{estensione}"


def _riga(a: dict) -> dict[str, str]:
    inizio = datetime.fromisoformat(a["inizio"])
    return {
        "Data": formatta_data(inizio),
        "Orario": inizio.strftime("%H:%M"),
        "Paziente": a.get("paziente_nome") or f"Paziente #{a['paziente_id']}",
        "Professionista": a.get("utente_nome") or f"Utente #{a['utente_id']}",
        "Tipo di trattamento": a.get("tipo_nome") or f"Tipo #{a['tipo_trattamento_id']}",
        "Prezzo": formatta_prezzo(a.get("prezzo")),
        "Descrizione": a.get("descrizione") or "",
    }


def esporta_xlsx(appuntamenti: list[dict]) -> bytes:
    df = pd.DataFrame([_riga(a) for a in appuntamenti], columns=COLONNE_XLSX)
    buf = BytesIO()
    df.to_excel(buf, index=False, sheet_name="Appuntamenti", engine="openpyxl")
    return buf.getvalue()


class _CanvasNumerato(canvas.Canvas):
    """Canvas a due passate: serve il totale pagine per il piè di pagina."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._pagine: list[dict] = []

    def showPage(self) -> None:
        self._pagine.append(dict(self.__dict__))
        self._startPage()

    def save(self) -> None:
        totale = len(self._pagine)
        for stato in self._pagine:
            self.__dict__.update(stato)
            self._piede(totale)
            super().showPage()
        super().save()

    def _piede(self, totale: int) -> None:
        larghezza, _ = self._pagesize
        self.setFont("Helvetica", 8)
        self.drawCentredString(
            larghezza / 2,
            10 * mm,
            f"Pagina {self._pageNumber} di {totale} - © {adesso_locale().year} {ORG_NAME}. Tutti i diritti riservati.",
        )


def esporta_pdf(appuntamenti: list[dict], filtri: dict[str, str] | None = None) -> bytes:
    """
    Report PDF:
    - titolo e data di generazione
    - filtri applicati (etichetta -> valore)
    - tabella appuntamenti a griglia
    """
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        title=f"Report Appuntamenti - {ORG_NAME}",
        leftMargin=14 * mm,
        rightMargin=14 * mm,
        topMargin=15 * mm,
        bottomMargin=20 * mm,
    )
    stili = getSampleStyleSheet()

    story: list[Any] = [
        Paragraph(f"Report Appuntamenti - {escape(ORG_NAME)}", stili["Title"]),
        Paragraph(f"Generato il: {formatta_data(adesso_locale())}", stili["Normal"]),
        Spacer(1, 4 * mm),
        Paragraph("Filtri applicati:", stili["Heading4"]),
    ]
    for etichetta, valore in (filtri or {}).items():
        story.append(Paragraph(f"• {escape(etichetta)}: {escape(str(valore))}", stili["Normal"]))
    if not filtri:
        story.append(Paragraph("• Nessuno", stili["Normal"]))
    story.append(Spacer(1, 5 * mm))

    righe = [_riga(a) for a in appuntamenti]
    dati = [COLONNE_PDF] + [[r[c] for c in COLONNE_PDF] for r in righe]
    tabella = Table(dati, repeatRows=1)
    tabella.setStyle(
        TableStyle(
            [
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("BACKGROUND", (0, 0), (-1, 0), GIALLO),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, GRIGIO_RIGHE]),
            ]
        )
    )
    story.append(tabella)

    doc.build(story, canvasmaker=_CanvasNumerato)
    return buf.getvalue()
