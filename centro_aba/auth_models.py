from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from centro_aba.db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Istante corrente in UTC, naive (come salvato su DB)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Utente(Base):
    """
    Professionista / utente applicativo.
    - username univoco (minuscolo)
    - password_hash con bcrypt (passlib)
    - is_admin distingue amministrazione e staff
    """
    __tablename__ = "utenti"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    professione: Mapped[str | None] = mapped_column(String(120), nullable=True)
    indirizzo: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_nascita: Mapped[date | None] = mapped_column(Date, nullable=True)
    pix: Mapped[str | None] = mapped_column(String(120), nullable=True)

    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    creato_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    sessioni: Mapped[list["Sessione"]] = relationship(back_populates="utente", cascade="all, delete-orphan")
    prezzi: Mapped[list["PrezzoProfessionista"]] = relationship(
        back_populates="utente", cascade="all, delete-orphan"
    )
    appuntamenti: Mapped[list["Appuntamento"]] = relationship(back_populates="utente")

    def __repr__(self) -> str:
        return f"Utente({self.username}, admin={self.is_admin})"


class Sessione(Base):
    """Sessione di login lato server: il cookie porta solo un token firmato che la referenzia."""
    __tablename__ = "sessioni"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    utente_id: Mapped[int] = mapped_column(ForeignKey("utenti.id"), nullable=False)
    creata_il: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    scade_il: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    utente: Mapped["Utente"] = relationship(back_populates="sessioni")
