from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

# Schemi Auth

class LoginIn(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RegisterIn(BaseModel):
    nome: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    conferma_password: str
    professione: str | None = None
    indirizzo: str | None = None
    data_nascita: date | None = None
    pix: str | None = None
    is_admin: bool = False


class UtenteUpdateIn(BaseModel):
    nome: str | None = None
    username: str | None = None
    professione: str | None = None
    indirizzo: str | None = None
    data_nascita: date | None = None
    pix: str | None = None
    is_admin: bool | None = None
    is_active: bool | None = None


class PasswordIn(BaseModel):
    nuova_password: str = Field(..., min_length=1)
    conferma_password: str
    password_attuale: str | None = None


# Schemi Domain

class TipoTrattamentoIn(BaseModel):
    codice: str = Field(..., min_length=1)
    nome: str = Field(..., min_length=1)
    descrizione: str | None = None
    prezzo: Decimal | None = Field(default=None, ge=0)


class TipoTrattamentoUpdateIn(BaseModel):
    codice: str | None = None
    nome: str | None = None
    descrizione: str | None = None
    prezzo: Decimal | None = Field(default=None, ge=0)


class PazienteIn(BaseModel):
    nome: str = Field(..., min_length=1)
    indirizzo: str | None = None
    data_nascita: date | None = None
    padre: str | None = None
    madre: str | None = None
    email: str | None = None
    telefono: str | None = None


class PazienteUpdateIn(BaseModel):
    nome: str | None = None
    indirizzo: str | None = None
    data_nascita: date | None = None
    padre: str | None = None
    madre: str | None = None
    email: str | None = None
    telefono: str | None = None


class AppuntamentoIn(BaseModel):
    utente_id: int
    paziente_id: int
    tipo_trattamento_id: int
    inizio: datetime
    fine: datetime
    descrizione: str | None = None
    # se omesso viene proposto il prezzo paziente -> professionista -> listino
    prezzo: Decimal | None = Field(default=None, ge=0)


class AppuntamentoUpdateIn(BaseModel):
    utente_id: int | None = None
    paziente_id: int | None = None
    tipo_trattamento_id: int | None = None
    inizio: datetime | None = None
    fine: datetime | None = None
    descrizione: str | None = None
    prezzo: Decimal | None = Field(default=None, ge=0)


class PrezzoProfessionistaIn(BaseModel):
    utente_id: int
    tipo_trattamento_id: int
    prezzo: Decimal | None = Field(default=None, ge=0)


class PrezzoPazienteIn(BaseModel):
    paziente_id: int
    tipo_trattamento_id: int
    prezzo: Decimal | None = Field(default=None, ge=0)


class PrezzoUpdateIn(BaseModel):
    prezzo: Decimal | None = Field(default=None, ge=0)
