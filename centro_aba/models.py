from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .auth_models import Sessione, Utente, utc_now  # noqa: F401
from .db import Base

PREZZO = Numeric(10, 2)


class TipoTrattamento(Base):
    __tablename__ = "tipi_trattamento"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    codice: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descrizione: Mapped[str | None] = mapped_column(Text, nullable=True)
    prezzo: Mapped[Decimal | None] = mapped_column(PREZZO, nullable=True)  # prezzo di listino
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    appuntamenti: Mapped[list["Appuntamento"]] = relationship(back_populates="tipo_trattamento")

    def __repr__(self) -> str:
        return f"TipoTrattamento({self.codice}, {self.nome})"


class Paziente(Base):
    __tablename__ = "pazienti"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nome: Mapped[str] = mapped_column(String(160), nullable=False)
    indirizzo: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_nascita: Mapped[date | None] = mapped_column(Date, nullable=True)
    padre: Mapped[str | None] = mapped_column(String(160), nullable=True)
    madre: Mapped[str | None] = mapped_column(String(160), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    prezzi: Mapped[list["PrezzoPaziente"]] = relationship(back_populates="paziente", cascade="all, delete-orphan")
    appuntamenti: Mapped[list["Appuntamento"]] = relationship(back_populates="paziente")

    def __repr__(self) -> str:
        return f"Paziente({self.nome})"


class Appuntamento(Base):
    __tablename__ = "appuntamenti"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    utente_id: Mapped[int] = mapped_column(ForeignKey("utenti.id"), nullable=False)
    paziente_id: Mapped[int] = mapped_column(ForeignKey("pazienti.id"), nullable=False)
    tipo_trattamento_id: Mapped[int] = mapped_column(ForeignKey("tipi_trattamento.id"), nullable=False)

    inizio: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    fine: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    descrizione: Mapped[str | None] = mapped_column(Text, nullable=True)
    prezzo: Mapped[Decimal | None] = mapped_column(PREZZO, nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    utente: Mapped["Utente"] = relationship(back_populates="appuntamenti")
    paziente: Mapped["Paziente"] = relationship(back_populates="appuntamenti")
    tipo_trattamento: Mapped["TipoTrattamento"] = relationship(back_populates="appuntamenti")


class PrezzoProfessionista(Base):
    """Prezzo specifico di un professionista per un tipo di trattamento."""
    __tablename__ = "prezzi_professionista"
    __table_args__ = (
        UniqueConstraint("utente_id", "tipo_trattamento_id", name="uq_prezzo_utente_tipo"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    utente_id: Mapped[int] = mapped_column(ForeignKey("utenti.id"), nullable=False)
    tipo_trattamento_id: Mapped[int] = mapped_column(ForeignKey("tipi_trattamento.id"), nullable=False)
    prezzo: Mapped[Decimal | None] = mapped_column(PREZZO, nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    utente: Mapped["Utente"] = relationship(back_populates="prezzi")
    tipo_trattamento: Mapped["TipoTrattamento"] = relationship()


class PrezzoPaziente(Base):
    """Prezzo concordato per un paziente su un tipo di trattamento (ha priorità su tutto)."""
    __tablename__ = "prezzi_paziente"
    __table_args__ = (
        UniqueConstraint("paziente_id", "tipo_trattamento_id", name="uq_prezzo_paziente_tipo"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    paziente_id: Mapped[int] = mapped_column(ForeignKey("pazienti.id"), nullable=False)
    tipo_trattamento_id: Mapped[int] = mapped_column(ForeignKey("tipi_trattamento.id"), nullable=False)
    prezzo: Mapped[Decimal | None] = mapped_column(PREZZO, nullable=True)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    paziente: Mapped["Paziente"] = relationship(back_populates="prezzi")
    tipo_trattamento: Mapped["TipoTrattamento"] = relationship()
