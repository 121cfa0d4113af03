"""Test login, sessioni e gestione utenti via API."""
from centro_aba.config import SESSION_COOKIE_NAME


def test_health(anon_client):
    r = anon_client.get("/api/health")

    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_login_imposta_cookie_httponly(anon_client):
    r = anon_client.post("/api/auth/login", json={"username": " Admin ", "password": "admin123"})

    assert r.status_code == 200
    assert r.json()["is_admin"] is True
    assert "password_hash" not in r.json()
    set_cookie = r.headers["set-cookie"].lower()
    assert SESSION_COOKIE_NAME in set_cookie
    assert "httponly" in set_cookie


def test_login_credenziali_errate(anon_client):
    r = anon_client.post("/api/auth/login", json={"username": "admin", "password": "sbagliata"})

    assert r.status_code == 401


def test_endpoint_protetti_senza_sessione(anon_client):
    for path in ("/api/me", "/api/pazienti", "/api/appuntamenti", "/api/tipi-trattamento", "/api/dashboard"):
        assert anon_client.get(path).status_code == 401, path


def test_me_con_cookie(admin_client):
    r = admin_client.get("/api/me")

    assert r.status_code == 200
    assert r.json()["username"] == "admin"


def test_bearer_accettato(anon_client):
    login = anon_client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
    token = login.cookies[SESSION_COOKIE_NAME]
    anon_client.cookies.clear()

    r = anon_client.get("/api/me", headers={"Authorization": f"Bearer {token}"})

    assert r.status_code == 200


def test_logout_revoca_la_sessione(admin_client):
    assert admin_client.post("/api/auth/logout").status_code == 200

    # il token resta nel client ma la sessione su DB non esiste più
    assert admin_client.get("/api/me").status_code == 401


def test_register_solo_admin(staff_client):
    r = staff_client.post(
        "/api/auth/register",
        json={"nome": "Marco", "username": "marco", "password": "x1", "conferma_password": "x1"},
    )

    assert r.status_code == 403


def test_register_e_login_nuovo_utente(admin_client, anon_client):
    r = admin_client.post(
        "/api/auth/register",
        json={
            "nome": "Marco Bianchi",
            "username": "Marco",
            "password": "pwd-marco",
            "conferma_password": "pwd-marco",
            "professione": "Terapista",
        },
    )
    assert r.status_code == 201
    assert r.json()["username"] == "marco"
    assert r.json()["is_admin"] is False

    login = anon_client.post("/api/auth/login", json={"username": "marco", "password": "pwd-marco"})
    assert login.status_code == 200


def test_register_username_duplicato(admin_client):
    payload = {"nome": "Admin 2", "username": "ADMIN", "password": "a", "conferma_password": "a"}

    r = admin_client.post("/api/auth/register", json=payload)

    assert r.status_code == 400
    assert "Username" in r.json()["detail"]


def test_register_password_non_coincidono(admin_client):
    r = admin_client.post(
        "/api/auth/register",
        json={"nome": "Marco", "username": "marco", "password": "a", "conferma_password": "b"},
    )

    assert r.status_code == 400


def test_register_payload_non_valido(admin_client):
    r = admin_client.post("/api/auth/register", json={"nome": "Marco"})

    assert r.status_code == 400
    assert r.json()["detail"] == "Dati non validi"
    assert r.json()["errors"]


def test_staff_aggiorna_il_proprio_profilo_ma_non_il_ruolo(staff_client, staff_user):
    r = staff_client.put(f"/api/utenti/{staff_user['id']}", json={"pix": "giulia@pix", "is_admin": True})

    assert r.status_code == 200
    assert r.json()["pix"] == "giulia@pix"
    assert r.json()["is_admin"] is False


def test_staff_non_modifica_altri_utenti(staff_client, admin_client):
    admin_id = admin_client.get("/api/me").json()["id"]

    assert staff_client.put(f"/api/utenti/{admin_id}", json={"nome": "X"}).status_code == 403


def test_cambio_password_richiede_password_attuale(staff_client, staff_user, anon_client):
    url = f"/api/utenti/{staff_user['id']}/password"

    errata = staff_client.put(url, json={"nuova_password": "n", "conferma_password": "n", "password_attuale": "no"})
    assert errata.status_code == 400

    ok = staff_client.put(url, json={"nuova_password": "n", "conferma_password": "n", "password_attuale": "segreta"})
    assert ok.status_code == 200
    assert anon_client.post("/api/auth/login", json={"username": "giulia", "password": "n"}).status_code == 200


def test_utente_disattivato_non_accede(admin_client, staff_client, staff_user):
    r = admin_client.put(f"/api/utenti/{staff_user['id']}", json={"is_active": False})

    assert r.status_code == 200
    assert staff_client.get("/api/me").status_code == 401


def test_ultimo_admin_non_declassabile(admin_client):
    admin_id = admin_client.get("/api/me").json()["id"]

    r = admin_client.put(f"/api/utenti/{admin_id}", json={"is_admin": False})

    assert r.status_code == 400


def test_eliminazione_utenti(admin_client, staff_user):
    admin_id = admin_client.get("/api/me").json()["id"]

    assert admin_client.delete(f"/api/utenti/{admin_id}").status_code == 400
    assert admin_client.delete(f"/api/utenti/{staff_user['id']}").status_code == 200
    assert admin_client.get(f"/api/utenti/{staff_user['id']}").status_code == 404
    assert admin_client.delete("/api/utenti/9999").status_code == 404


def test_lista_utenti(staff_client):
    r = staff_client.get("/api/utenti")

    assert r.status_code == 200
    assert {u["username"] for u in r.json()} == {"admin", "giulia"}


def test_profilo_personale_aggiornato_da_staff(staff_client, staff_user):
    """Stesso payload del modulo "Il mio profilo": campi vuoti inviati come null."""
    r = staff_client.put(
        f"/api/utenti/{staff_user['id']}",
        json={"nome": "Giulia Verdi Neri", "professione": None, "indirizzo": "Rua A, 10", "pix": None},
    )

    assert r.status_code == 200
    me = staff_client.get("/api/me").json()
    assert me["nome"] == "Giulia Verdi Neri"
    assert me["professione"] is None
    assert me["indirizzo"] == "Rua A, 10"
