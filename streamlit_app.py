from __future__ import annotations

import os
from datetime import date, datetime, time, timedelta

import pandas as pd
import requests
import streamlit as st

from centro_aba.config import SESSION_COOKIE_NAME

st.set_page_config(page_title="Centro ABA", layout="wide")

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")



# HTTP client (cookie di sessione)

def _http() -> requests.Session:
    if "http" not in st.session_state:
        st.session_state["http"] = requests.Session()
    return st.session_state["http"]


def _check(r: requests.Response) -> None:
    if r.status_code == 401:
        raise PermissionError("401 Non autenticato (sessione scaduta oppure logout).")
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail")
        except ValueError:
            detail = r.text
        raise RuntimeError(detail or f"Errore HTTP {r.status_code}")


def api_get(path: str, params: dict | None = None) -> dict | list:
    r = _http().get(f"{API_BASE}{path}", params=params, timeout=10)
    _check(r)
    return r.json()


def api_get_bytes(path: str, params: dict | None = None) -> bytes:
    r = _http().get(f"{API_BASE}{path}", params=params, timeout=30)
    _check(r)
    return r.content


def api_send(method: str, path: str, payload: dict | None = None) -> dict:
    r = _http().request(method, f"{API_BASE}{path}", json=payload, timeout=10)
    _check(r)
    return r.json()


def api_login(username: str, password: str) -> dict:
    r = _http().post(f"{API_BASE}/api/auth/login", json={"username": username, "password": password}, timeout=10)
    _check(r)
    # alcuni host (es. localhost) non vengono gestiti dal cookie jar: teniamo anche il Bearer
    token = r.cookies.get(SESSION_COOKIE_NAME)
    if token:
        _http().headers["Authorization"] = f"Bearer {token}"
    return r.json()


def do_logout() -> None:
    try:
        api_send("POST", "/api/auth/logout")
    except Exception as e:
        st.session_state["auth_error"] = str(e)
    st.session_state.pop("http", None)
    st.session_state.pop("user", None)
    st.rerun()


def current_user() -> dict | None:
    return st.session_state.get("user")


def fmt_prezzo(v: str | None) -> str:
    return f"R$ {v}" if v else "-"


def fmt_dt(iso: str) -> str:
    return datetime.fromisoformat(iso).strftime("%d/%m/%Y %H:%M")



# Sidebar login

with st.sidebar:
    st.header("Accesso")

    if not current_user():
        u = st.text_input("Username", key="login_user")
        p = st.text_input("Password", type="password", key="login_pass")

        if st.button("Login", key="login_btn"):
            try:
                st.session_state["user"] = api_login(u.strip().lower(), p)
                st.session_state.pop("auth_error", None)
                st.success("Login effettuato.")
                st.rerun()
            except PermissionError:
                st.error("Utente o password non validi.")
            except Exception as e:
                st.error(str(e))
    else:
        user = current_user()
        ruolo = "amministratore" if user["is_admin"] else "staff"
        st.write(f"Utente: **{user['nome']}** ({ruolo})")

        if st.session_state.get("auth_error"):
            st.error(st.session_state["auth_error"])

        if st.button("Logout", key="logout_btn"):
            do_logout()

    st.divider()
    st.caption(f"API: {API_BASE}")



# UI

st.title("Centro ABA - Gestione appuntamenti")

user = current_user()
if not user:
    st.info("Effettua il login dalla sidebar per accedere.")
    st.stop()

is_admin = bool(user["is_admin"])

try:
    tipi = api_get("/api/tipi-trattamento")
    pazienti = api_get("/api/pazienti")
    utenti = api_get("/api/utenti")
except PermissionError as e:
    st.session_state["auth_error"] = str(e)
    st.error("Sessione non valida. Premi Logout e rifai login.")
    st.stop()
except Exception as e:
    st.error(f"API non raggiungibile o errore: {e}")
    st.stop()

tab_dash, tab_app, tab_cal, tab_paz, tab_tipi, tab_ute, tab_rep = st.tabs(
    ["Dashboard", "Appuntamenti", "Calendario", "Pazienti", "Tipi di trattamento", "Utenti", "Report"]
)



# TAB Dashboard

with tab_dash:
    d = api_get("/api/dashboard")
    c1, c2 = st.columns(2)
    c1.metric("Appuntamenti", d["totale_appuntamenti"])
    c2.metric("Pazienti", d["totale_pazienti"])

    st.subheader("Appuntamenti per mese")
    st.bar_chart(pd.DataFrame(d["per_mese"]).set_index("etichetta")["conteggio"])

    c3, c4 = st.columns(2)
    with c3:
        st.write("**Prossimi appuntamenti**")
        for a in d["prossimi"]:
            st.write(f"- {fmt_dt(a['inizio'])} | {a['paziente_nome']} | {a['tipo_nome']}")
    with c4:
        st.write("**Appuntamenti recenti**")
        for a in d["recenti"]:
            st.write(f"- {fmt_dt(a['inizio'])} | {a['paziente_nome']} | {a['tipo_nome']}")



# TAB Appuntamenti

with tab_app:
    st.subheader("Nuovo appuntamento")

    colA, colB = st.columns(2)
    with colA:
        professionista = st.selectbox(
            "Professionista", options=utenti, format_func=lambda u: u["nome"], key="app_utente"
        )
        paziente = st.selectbox("Paziente", options=pazienti, format_func=lambda p: p["nome"], key="app_paziente")
        tipo = st.selectbox(
            "Tipo di trattamento", options=tipi, format_func=lambda t: f"{t['codice']} - {t['nome']}", key="app_tipo"
        )
    with colB:
        giorno = st.date_input("Data", value=date.today(), key="app_data")
        ora_inizio = st.time_input("Inizio", value=time(9, 0), key="app_inizio")
        ora_fine = st.time_input("Fine", value=time(10, 0), key="app_fine")
        descrizione = st.text_area("Descrizione (opzionale)", height=80, key="app_descr")

    prezzo_default = 0.0
    if professionista and paziente and tipo:
        suggerito = api_get(
            "/api/prezzi/risolvi",
            params={
                "paziente_id": paziente["id"],
                "utente_id": professionista["id"],
                "tipo_trattamento_id": tipo["id"],
            },
        )
        if suggerito["prezzo"]:
            prezzo_default = float(suggerito["prezzo"])
            st.caption(f"Prezzo suggerito: {fmt_prezzo(suggerito['prezzo'])} (da {suggerito['origine']})")

    prezzo = st.number_input("Prezzo", min_value=0.0, value=prezzo_default, step=10.0, key="app_prezzo")

    if st.button("Salva appuntamento", key="app_submit", disabled=not (professionista and paziente and tipo)):
        payload = {
            "utente_id": professionista["id"],
            "paziente_id": paziente["id"],
            "tipo_trattamento_id": tipo["id"],
            "inizio": datetime.combine(giorno, ora_inizio).isoformat(),
            "fine": datetime.combine(giorno, ora_fine).isoformat(),
            "descrizione": descrizione or None,
            "prezzo": f"{prezzo:.2f}",
        }
        try:
            res = api_send("POST", "/api/appuntamenti", payload)
            st.success(f"Appuntamento creato (ID: {res['id']}).")
        except Exception as e:
            st.error(str(e))

    st.divider()
    st.subheader("Elenco appuntamenti")
    items = api_get("/api/appuntamenti")
    if not items:
        st.info("Nessun appuntamento registrato.")
    else:
        st.dataframe(
            pd.DataFrame(items)[["id", "inizio", "fine", "paziente_nome", "utente_nome", "tipo_nome", "prezzo"]],
            hide_index=True,
        )
        da_eliminare = st.selectbox("Elimina appuntamento", options=[a["id"] for a in items], key="app_del")
        if st.button("Elimina", key="app_del_btn"):
            try:
                api_send("DELETE", f"/api/appuntamenti/{da_eliminare}")
                st.success("Appuntamento eliminato.")
                st.rerun()
            except Exception as e:
                st.error(str(e))



# TAB Calendario

with tab_cal:
    c1, c2, c3 = st.columns(3)
    vista = c1.selectbox("Vista", options=["mese", "settimana", "giorno"], key="cal_vista")
    giorno_cal = c2.date_input("Data", value=date.today(), key="cal_data")
    filtro_prof = c3.selectbox(
        "Professionista", options=[None] + utenti, format_func=lambda u: u["nome"] if u else "Tutti", key="cal_prof"
    )

    params = {"vista": vista, "data": giorno_cal.isoformat()}
    if filtro_prof:
        params["utente_id"] = filtro_prof["id"]
    cal = api_get("/api/calendario", params=params)

    st.caption(f"Dal {cal['inizio']} al {cal['fine']}")
    settimane = [cal["giorni"][i:i + 7] for i in range(0, len(cal["giorni"]), 7)]
    for settimana in settimane:
        cols = st.columns(len(settimana))
        for col, g in zip(cols, settimana):
            with col:
                etichetta = date.fromisoformat(g["data"]).strftime("%d/%m")
                st.markdown(f"**{etichetta}**" if g["nel_periodo"] else f"_{etichetta}_")
                for e in g["eventi"]:
                    ora = datetime.fromisoformat(e["inizio"]).strftime("%H:%M")
                    st.markdown(
                        f"<div style='border-left:3px solid {e['colore']};padding-left:4px;font-size:0.8em'>"
                        f"{ora} {e['titolo']}<br/>{e['tipo']}</div>",
                        unsafe_allow_html=True,
                    )



# TAB Pazienti

with tab_paz:
    with st.expander("Nuovo paziente"):
        c1, c2 = st.columns(2)
        nome = c1.text_input("Nome", key="paz_nome")
        nascita = c2.date_input("Data di nascita", value=None, key="paz_nascita")
        padre = c1.text_input("Padre", key="paz_padre")
        madre = c2.text_input("Madre", key="paz_madre")
        email = c1.text_input("Email", key="paz_email")
        tel = c2.text_input("Telefono", key="paz_tel")
        indirizzo = st.text_input("Indirizzo", key="paz_indirizzo")

        if st.button("Crea paziente", key="paz_submit"):
            if not nome.strip():
                st.error("Il nome è obbligatorio.")
            else:
                try:
                    res = api_send(
                        "POST",
                        "/api/pazienti",
                        {
                            "nome": nome.strip(),
                            "data_nascita": nascita.isoformat() if nascita else None,
                            "padre": padre or None,
                            "madre": madre or None,
                            "email": email or None,
                            "telefono": tel or None,
                            "indirizzo": indirizzo or None,
                        },
                    )
                    st.success(f"Paziente creato: {res['id']}")
                except Exception as e:
                    st.error(str(e))

    if pazienti:
        st.dataframe(pd.DataFrame(pazienti), hide_index=True)

        st.subheader("Prezzi concordati")
        paz_sel = st.selectbox("Paziente", options=pazienti, format_func=lambda p: p["nome"], key="paz_prezzi")
        for r in api_get(f"/api/prezzi-paziente/{paz_sel['id']}"):
            nome_tipo = next((t["nome"] for t in tipi if t["id"] == r["tipo_trattamento_id"]), "?")
            st.write(f"- {nome_tipo}: {fmt_prezzo(r['prezzo'])}")
        c1, c2 = st.columns(2)
        tipo_p = c1.selectbox("Tipo", options=tipi, format_func=lambda t: t["nome"], key="paz_prezzo_tipo")
        valore_p = c2.number_input("Prezzo", min_value=0.0, step=10.0, key="paz_prezzo_val")
        if st.button("Aggiungi prezzo", key="paz_prezzo_btn"):
            try:
                api_send(
                    "POST",
                    "/api/prezzi-paziente",
                    {"paziente_id": paz_sel["id"], "tipo_trattamento_id": tipo_p["id"], "prezzo": f"{valore_p:.2f}"},
                )
                st.rerun()
            except Exception as e:
                st.error(str(e))
    else:
        st.info("Nessun paziente presente.")



# TAB Tipi di trattamento

with tab_tipi:
    st.dataframe(pd.DataFrame(tipi), hide_index=True)

    if is_admin:
        with st.expander("Nuovo tipo di trattamento"):
            c1, c2 = st.columns(2)
            codice = c1.text_input("Codice", key="tipo_codice")
            nome_tipo = c2.text_input("Nome", key="tipo_nome")
            descr_tipo = st.text_input("Descrizione", key="tipo_descr")
            prezzo_tipo = st.number_input("Prezzo di listino", min_value=0.0, step=10.0, key="tipo_prezzo")
            if st.button("Crea tipo", key="tipo_submit"):
                try:
                    api_send(
                        "POST",
                        "/api/tipi-trattamento",
                        {
                            "codice": codice,
                            "nome": nome_tipo,
                            "descrizione": descr_tipo or None,
                            "prezzo": f"{prezzo_tipo:.2f}",
                        },
                    )
                    st.rerun()
                except Exception as e:
                    st.error(str(e))
    else:
        st.caption("Solo gli amministratori possono modificare i tipi di trattamento.")



# TAB Utenti

with tab_ute:
    st.dataframe(
        pd.DataFrame(utenti)[["id", "nome", "username", "professione", "is_admin", "is_active"]], hide_index=True
    )

    with st.expander("Il mio profilo"):
        c1, c2 = st.columns(2)
        mio_nome = c1.text_input("Nome", value=user["nome"], key="prof_nome")
        mia_professione = c2.text_input("Professione", value=user["professione"] or "", key="prof_prof")
        mio_indirizzo = c1.text_input("Indirizzo", value=user["indirizzo"] or "", key="prof_indirizzo")
        mio_pix = c2.text_input("PIX", value=user["pix"] or "", key="prof_pix")
        if st.button("Salva profilo", key="prof_submit"):
            try:
                st.session_state["user"] = api_send(
                    "PUT",
                    f"/api/utenti/{user['id']}",
                    {
                        "nome": mio_nome,
                        "professione": mia_professione or None,
                        "indirizzo": mio_indirizzo or None,
                        "pix": mio_pix or None,
                    },
                )
                st.success("Profilo aggiornato.")
            except Exception as e:
                st.error(str(e))

        st.write("**Cambia password**")
        attuale = st.text_input("Password attuale", type="password", key="prof_pwd_old")
        nuova = st.text_input("Nuova password", type="password", key="prof_pwd_new")
        conferma = st.text_input("Conferma nuova password", type="password", key="prof_pwd_conf")
        if st.button("Cambia password", key="prof_pwd_submit"):
            try:
                api_send(
                    "PUT",
                    f"/api/utenti/{user['id']}/password",
                    {"nuova_password": nuova, "conferma_password": conferma, "password_attuale": attuale},
                )
                st.success("Password aggiornata.")
            except Exception as e:
                st.error(str(e))

    if is_admin:
        with st.expander("Nuovo professionista"):
            c1, c2 = st.columns(2)
            nome_u = c1.text_input("Nome", key="ute_nome")
            username_u = c2.text_input("Username", key="ute_username")
            pwd_u = c1.text_input("Password", type="password", key="ute_pwd")
            pwd2_u = c2.text_input("Conferma password", type="password", key="ute_pwd2")
            professione_u = c1.text_input("Professione", key="ute_prof")
            admin_u = c2.checkbox("Amministratore", key="ute_admin")
            if st.button("Registra", key="ute_submit"):
                try:
                    api_send(
                        "POST",
                        "/api/auth/register",
                        {
                            "nome": nome_u,
                            "username": username_u,
                            "password": pwd_u,
                            "conferma_password": pwd2_u,
                            "professione": professione_u or None,
                            "is_admin": admin_u,
                        },
                    )
                    st.rerun()
                except Exception as e:
                    st.error(str(e))

    st.subheader("Prezzi per professionista")
    prof_sel = st.selectbox("Professionista", options=utenti, format_func=lambda u: u["nome"], key="ute_prezzi")
    for r in api_get(f"/api/prezzi-professionista/{prof_sel['id']}"):
        nome_tipo = next((t["nome"] for t in tipi if t["id"] == r["tipo_trattamento_id"]), "?")
        st.write(f"- {nome_tipo}: {fmt_prezzo(r['prezzo'])}")



# TAB Report

with tab_rep:
    c1, c2, c3 = st.columns(3)
    rep_prof = c1.selectbox(
        "Professionista", options=[None] + utenti, format_func=lambda u: u["nome"] if u else "Tutti", key="rep_prof"
    )
    rep_paz = c2.selectbox(
        "Paziente", options=[None] + pazienti, format_func=lambda p: p["nome"] if p else "Tutti", key="rep_paz"
    )
    periodo = c3.date_input(
        "Periodo", value=(date.today() - timedelta(days=30), date.today()), key="rep_periodo"
    )

    filtri: dict = {}
    if rep_prof:
        filtri["utente_id"] = rep_prof["id"]
    if rep_paz:
        filtri["paziente_id"] = rep_paz["id"]
    if isinstance(periodo, tuple) and len(periodo) == 2:
        filtri["dal"], filtri["al"] = periodo[0].isoformat(), periodo[1].isoformat()

    r = api_get("/api/report/riepilogo", params=filtri)
    c1, c2 = st.columns(2)
    c1.metric("Appuntamenti", r["totale_appuntamenti"])
    c2.metric("Fatturato", fmt_prezzo(r["fatturato_totale"]))

    if r["per_tipo"]:
        st.write("**Per tipo di trattamento**")
        st.bar_chart(pd.DataFrame(r["per_tipo"]).set_index("nome")["conteggio"])
    if r["per_paziente"]:
        st.write("**Pazienti con più appuntamenti**")
        st.bar_chart(pd.DataFrame(r["per_paziente"]).set_index("nome")["conteggio"])
    st.write("**Fatturato per mese**")
    fatt = pd.DataFrame(r["fatturato_per_mese"])
    fatt["totale"] = fatt["totale"].astype(float)
    st.line_chart(fatt.set_index("etichetta")["totale"])

    c1, c2 = st.columns(2)
    c1.download_button(
        "Esporta Excel",
        data=api_get_bytes("/api/export/xlsx", params=filtri),
        file_name=f"report-appuntamenti-{date.today().strftime('%d-%m-%Y')}.xlsx",
    )
    c2.download_button(
        "Esporta PDF",
        data=api_get_bytes("/api/export/pdf", params=filtri),
        file_name=f"report-appuntamenti-{date.today().strftime('%d-%m-%Y')}.pdf",
    )
