from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import date
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyCookie, HTTPAuthorizationCredentials, HTTPBearer

from centro_aba import report
from centro_aba.auth_models import Utente
from centro_aba.auth_service import (
    aggiorna_utente,
    apri_sessione,
    autentica,
    cambia_password,
    chiudi_sessione,
    crea_utente,
    elimina_utente,
    get_utente_flat,
    lista_utenti_flat,
    utente_da_token,
    utente_flat,
)
from centro_aba.calendario import costruisci_calendario
from centro_aba.config import COOKIE_SECURE, SESSION_COOKIE_NAME, SESSION_EXPIRE_MINUTES, setup_logging
from centro_aba.export import esporta_pdf, esporta_xlsx, formatta_data, nome_file
from centro_aba.pricing import prezzo_suggerito
from centro_aba.schemas import (
    AppuntamentoIn,
    AppuntamentoUpdateIn,
    LoginIn,
    PasswordIn,
    PazienteIn,
    PazienteUpdateIn,
    PrezzoPazienteIn,
    PrezzoProfessionistaIn,
    PrezzoUpdateIn,
    RegisterIn,
    TipoTrattamentoIn,
    TipoTrattamentoUpdateIn,
    UtenteUpdateIn,
)
from centro_aba.seed import seed_base
from centro_aba.services import (
    PREZZO_AUTOMATICO,
    adesso_locale,
    aggiorna_appuntamento,
    aggiorna_paziente,
    aggiorna_prezzo_paziente,
    aggiorna_prezzo_professionista,
    aggiorna_tipo,
    crea_appuntamento,
    crea_paziente,
    crea_prezzo_paziente,
    crea_prezzo_professionista,
    crea_tipo,
    elimina_appuntamento,
    elimina_paziente,
    elimina_prezzo_paziente,
    elimina_prezzo_professionista,
    elimina_tipo,
    get_appuntamento_flat,
    get_paziente_flat,
    get_tipo_flat,
    init_db,
    lista_appuntamenti_flat,
    lista_pazienti_flat,
    lista_prezzi_paziente,
    lista_prezzi_professionista,
    lista_tipi_flat,
    prezzo_str,
)

setup_logging()
logger = logging.getLogger(__name__)

# Cookie di sessione (browser / Streamlit) oppure Authorization: Bearer <token> (script)
cookie_scheme = APIKeyCookie(name=SESSION_COOKIE_NAME, auto_error=False)
bearer_scheme = HTTPBearer(auto_error=False)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Crea tabelle e seed base (idempotente)
    init_db()
    seed_base()
    logger.info("Centro ABA API avviata")
    yield


app = FastAPI(title="Centro ABA API", version="1.0.0", lifespan=lifespan)



# Logging e gestione errori

@app.middleware("http")
async def log_richieste(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        durata = (time.perf_counter() - start) * 1000
        logger.info("%s %s %s in %dms", request.method, request.url.path, response.status_code, durata)
    return response


@app.exception_handler(RequestValidationError)
async def dati_non_validi(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Dati non validi su %s: %s", request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Dati non validi", "errors": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(ValueError)
async def errore_validazione(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def errore_interno(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Errore non gestito su %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Errore interno del server"},
    )


def _o_404(valore: Any, messaggio: str) -> Any:
    if valore is None or valore is False:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=messaggio)
    return valore



# Dipendenze auth

def _token_da_richiesta(
    cookie: str | None = Depends(cookie_scheme),
    bearer: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    token = cookie or (bearer.credentials if bearer else None)
    if not token:
        return None
    # protezione extra: elimina spazi / virgolette accidentali
    return token.strip().strip('"').strip("'")


def get_current_user(token: str | None = Depends(_token_da_richiesta)) -> Utente:
    u = utente_da_token(token) if token else None
    if not u:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Non autenticato")
    return u


def require_admin(user: Utente = Depends(get_current_user)) -> Utente:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permesso negato")
    return user



# AUTH endpoints

@app.post("/api/auth/login")
def login(payload: LoginIn, response: Response) -> dict[str, Any]:
    u = autentica(payload.username, payload.password)
    if not u:
        logger.warning("Login fallito per '%s'", payload.username.strip().lower())
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Utente o password non validi")

    token = apri_sessione(u.id)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )
    logger.info("Login utente '%s'", u.username)
    return utente_flat(u)


@app.post("/api/auth/logout")
def logout(response: Response, token: str | None = Depends(_token_da_richiesta)) -> dict[str, Any]:
    if token and chiudi_sessione(token):
        logger.info("Logout effettuato")
    response.delete_cookie(SESSION_COOKIE_NAME)
    return {"ok": True}


@app.post("/api/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, admin: Utente = Depends(require_admin)) -> dict[str, Any]:
    return crea_utente(**payload.model_dump())


@app.get("/api/me")
def me(user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return utente_flat(user)


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {"status": "ok"}



# Utenti / professionisti

@app.get("/api/utenti")
def api_utenti(user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_utenti_flat()


@app.get("/api/utenti/{utente_id}")
def api_utente(utente_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return _o_404(get_utente_flat(utente_id), "Utente non trovato")


@app.put("/api/utenti/{utente_id}")
def api_aggiorna_utente(
    utente_id: int, payload: UtenteUpdateIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    # il proprio profilo oppure admin
    if user.id != utente_id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permesso negato")
    aggiornato = aggiorna_utente(utente_id, payload.model_dump(exclude_unset=True), da_admin=user.is_admin)
    return _o_404(aggiornato, "Utente non trovato")


@app.put("/api/utenti/{utente_id}/password")
def api_cambia_password(
    utente_id: int, payload: PasswordIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    if user.id != utente_id and not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permesso negato")
    ok = cambia_password(
        utente_id,
        payload.nuova_password,
        payload.conferma_password,
        password_attuale=payload.password_attuale,
        da_admin=user.is_admin and user.id != utente_id,
    )
    _o_404(ok, "Utente non trovato")
    return {"ok": True}


@app.delete("/api/utenti/{utente_id}")
def api_elimina_utente(utente_id: int, admin: Utente = Depends(require_admin)) -> dict[str, Any]:
    _o_404(elimina_utente(utente_id, richiedente_id=admin.id), "Utente non trovato")
    return {"ok": True, "messaggio": "Utente eliminato"}



# Tipi di trattamento

@app.get("/api/tipi-trattamento")
def api_tipi(user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_tipi_flat()


@app.get("/api/tipi-trattamento/{tipo_id}")
def api_tipo(tipo_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return _o_404(get_tipo_flat(tipo_id), "Tipo di trattamento non trovato")


@app.post("/api/tipi-trattamento", status_code=status.HTTP_201_CREATED)
def api_crea_tipo(payload: TipoTrattamentoIn, admin: Utente = Depends(require_admin)) -> dict[str, Any]:
    return crea_tipo(**payload.model_dump())


@app.put("/api/tipi-trattamento/{tipo_id}")
def api_aggiorna_tipo(
    tipo_id: int, payload: TipoTrattamentoUpdateIn, admin: Utente = Depends(require_admin)
) -> dict[str, Any]:
    return _o_404(aggiorna_tipo(tipo_id, payload.model_dump(exclude_unset=True)), "Tipo di trattamento non trovato")


@app.delete("/api/tipi-trattamento/{tipo_id}")
def api_elimina_tipo(tipo_id: int, admin: Utente = Depends(require_admin)) -> dict[str, Any]:
    _o_404(elimina_tipo(tipo_id), "Tipo di trattamento non trovato")
    return {"ok": True, "messaggio": "Tipo di trattamento eliminato"}



# Pazienti

@app.get("/api/pazienti")
def api_pazienti(user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_pazienti_flat()


@app.get("/api/pazienti/{paziente_id}")
def api_paziente(paziente_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return _o_404(get_paziente_flat(paziente_id), "Paziente non trovato")


@app.post("/api/pazienti", status_code=status.HTTP_201_CREATED)
def api_crea_paziente(payload: PazienteIn, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return crea_paziente(**payload.model_dump())


@app.put("/api/pazienti/{paziente_id}")
def api_aggiorna_paziente(
    paziente_id: int, payload: PazienteUpdateIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    return _o_404(aggiorna_paziente(paziente_id, payload.model_dump(exclude_unset=True)), "Paziente non trovato")


@app.delete("/api/pazienti/{paziente_id}")
def api_elimina_paziente(paziente_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    _o_404(elimina_paziente(paziente_id), "Paziente non trovato")
    return {"ok": True, "messaggio": "Paziente eliminato"}



# Appuntamenti

@app.get("/api/appuntamenti")
def api_appuntamenti(
    utente_id: int | None = None,
    paziente_id: int | None = None,
    dal: date | None = None,
    al: date | None = None,
    user: Utente = Depends(get_current_user),
) -> list[dict]:
    return lista_appuntamenti_flat(utente_id=utente_id, paziente_id=paziente_id, dal=dal, al=al)


@app.get("/api/appuntamenti/paziente/{paziente_id}")
def api_appuntamenti_paziente(paziente_id: int, user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_appuntamenti_flat(paziente_id=paziente_id)


@app.get("/api/appuntamenti/utente/{utente_id}")
def api_appuntamenti_utente(utente_id: int, user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_appuntamenti_flat(utente_id=utente_id)


@app.get("/api/appuntamenti/{appuntamento_id}")
def api_appuntamento(appuntamento_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return _o_404(get_appuntamento_flat(appuntamento_id), "Appuntamento non trovato")


@app.post("/api/appuntamenti", status_code=status.HTTP_201_CREATED)
def api_crea_appuntamento(payload: AppuntamentoIn, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    dati = payload.model_dump(exclude={"prezzo"})
    prezzo = payload.prezzo if "prezzo" in payload.model_fields_set else PREZZO_AUTOMATICO
    return crea_appuntamento(**dati, prezzo=prezzo)


@app.put("/api/appuntamenti/{appuntamento_id}")
def api_aggiorna_appuntamento(
    appuntamento_id: int, payload: AppuntamentoUpdateIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    aggiornato = aggiorna_appuntamento(appuntamento_id, payload.model_dump(exclude_unset=True))
    return _o_404(aggiornato, "Appuntamento non trovato")


@app.delete("/api/appuntamenti/{appuntamento_id}")
def api_elimina_appuntamento(appuntamento_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    _o_404(elimina_appuntamento(appuntamento_id), "Appuntamento non trovato")
    return {"ok": True, "messaggio": "Appuntamento eliminato"}



# Prezzi specifici

@app.get("/api/prezzi-professionista/{utente_id}")
def api_prezzi_professionista(utente_id: int, user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_prezzi_professionista(utente_id)


@app.post("/api/prezzi-professionista", status_code=status.HTTP_201_CREATED)
def api_crea_prezzo_professionista(
    payload: PrezzoProfessionistaIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    return crea_prezzo_professionista(**payload.model_dump())


@app.put("/api/prezzi-professionista/{relazione_id}")
def api_aggiorna_prezzo_professionista(
    relazione_id: int, payload: PrezzoUpdateIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    return _o_404(aggiorna_prezzo_professionista(relazione_id, payload.prezzo), "Relazione non trovata")


@app.delete("/api/prezzi-professionista/{relazione_id}")
def api_elimina_prezzo_professionista(relazione_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    _o_404(elimina_prezzo_professionista(relazione_id), "Relazione non trovata")
    return {"ok": True, "messaggio": "Relazione eliminata"}


@app.get("/api/prezzi-paziente/{paziente_id}")
def api_prezzi_paziente(paziente_id: int, user: Utente = Depends(get_current_user)) -> list[dict]:
    return lista_prezzi_paziente(paziente_id)


@app.post("/api/prezzi-paziente", status_code=status.HTTP_201_CREATED)
def api_crea_prezzo_paziente(payload: PrezzoPazienteIn, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return crea_prezzo_paziente(**payload.model_dump())


@app.put("/api/prezzi-paziente/{relazione_id}")
def api_aggiorna_prezzo_paziente(
    relazione_id: int, payload: PrezzoUpdateIn, user: Utente = Depends(get_current_user)
) -> dict[str, Any]:
    return _o_404(aggiorna_prezzo_paziente(relazione_id, payload.prezzo), "Relazione non trovata")


@app.delete("/api/prezzi-paziente/{relazione_id}")
def api_elimina_prezzo_paziente(relazione_id: int, user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    _o_404(elimina_prezzo_paziente(relazione_id), "Relazione non trovata")
    return {"ok": True, "messaggio": "Relazione eliminata"}


@app.get("/api/prezzi/risolvi")
def api_risolvi_prezzo(
    paziente_id: int = Query(...),
    utente_id: int = Query(...),
    tipo_trattamento_id: int = Query(...),
    user: Utente = Depends(get_current_user),
) -> dict[str, Any]:
    r = prezzo_suggerito(paziente_id, utente_id, tipo_trattamento_id)
    return {"prezzo": prezzo_str(r.prezzo), "origine": r.origine}



# Calendario, report, export

@app.get("/api/calendario")
def api_calendario(
    vista: str = Query("mese"),
    data: date | None = None,
    utente_id: int | None = None,
    user: Utente = Depends(get_current_user),
) -> dict[str, Any]:
    return costruisci_calendario(vista, data or adesso_locale().date(), lista_appuntamenti_flat(utente_id=utente_id))


@app.get("/api/dashboard")
def api_dashboard(user: Utente = Depends(get_current_user)) -> dict[str, Any]:
    return report.dashboard(lista_appuntamenti_flat(), len(lista_pazienti_flat()), adesso_locale())


@app.get("/api/report/riepilogo")
def api_riepilogo(
    utente_id: int | None = None,
    paziente_id: int | None = None,
    dal: date | None = None,
    al: date | None = None,
    riferimento: date | None = None,
    user: Utente = Depends(get_current_user),
) -> dict[str, Any]:
    items = lista_appuntamenti_flat(utente_id=utente_id, paziente_id=paziente_id, dal=dal, al=al)
    return report.riepilogo(items, lista_tipi_flat(), lista_pazienti_flat(), riferimento or adesso_locale().date())


def _filtri_export(
    utente_id: int | None, paziente_id: int | None, dal: date | None, al: date | None
) -> dict[str, str]:
    filtri: dict[str, str] = {}
    if utente_id is not None:
        u = get_utente_flat(utente_id)
        filtri["Professionista"] = u["nome"] if u else f"Utente #{utente_id}"
    if paziente_id is not None:
        p = get_paziente_flat(paziente_id)
        filtri["Paziente"] = p["nome"] if p else f"Paziente #{paziente_id}"
    if dal and al:
        filtri["Periodo"] = f"{formatta_data(dal)} a {formatta_data(al)}"
    elif dal:
        filtri["Periodo"] = f"dal {formatta_data(dal)}"
    elif al:
        filtri["Periodo"] = f"fino al {formatta_data(al)}"
    return filtri


@app.get("/api/export/{formato}")
def api_export(
    formato: str,
    utente_id: int | None = None,
    paziente_id: int | None = None,
    dal: date | None = None,
    al: date | None = None,
    user: Utente = Depends(get_current_user),
) -> Response:
    items = lista_appuntamenti_flat(utente_id=utente_id, paziente_id=paziente_id, dal=dal, al=al)

    if formato == "xlsx":
        contenuto = esporta_xlsx(items)
        media_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    elif formato == "pdf":
        contenuto = esporta_pdf(items, _filtri_export(utente_id, paziente_id, dal, al))
        media_type = "application/pdf"
    else:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Formato non supportato")

    return Response(
        content=contenuto,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{nome_file(formato)}"'},
    )
