from __future__ import annotations

import argparse
from datetime import date
from pathlib import Path

from centro_aba.auth_service import cambia_password, crea_utente, get_utente_by_username, lista_utenti_flat
from centro_aba.config import setup_logging
from centro_aba.export import esporta_pdf, esporta_xlsx, nome_file
from centro_aba.seed import seed_base
from centro_aba.services import crea_paziente, init_db, lista_appuntamenti_flat, lista_pazienti_flat, lista_tipi_flat


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("DB inizializzato e seed completato.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "utenti":
        for u in lista_utenti_flat():
            ruolo = "admin" if u["is_admin"] else "staff"
            print(f"{u['id']} | {u['nome']} | {u['username']} | {ruolo}")
    elif args.entity == "pazienti":
        for p in lista_pazienti_flat():
            print(f"{p['id']} | {p['nome']} | {p['telefono'] or '-'}")
    elif args.entity == "tipi":
        for t in lista_tipi_flat():
            print(f"{t['id']} | {t['codice']} | {t['nome']} | {t['prezzo'] or '-'}")


def cmd_add_patient(args: argparse.Namespace) -> None:
    p = crea_paziente(args.nome, email=args.email, telefono=args.telefono)
    print(f"Paziente creato: {p['id']}")


def cmd_add_user(args: argparse.Namespace) -> None:
    u = crea_utente(args.nome, args.username, args.password, is_admin=args.admin, professione=args.professione)
    print(f"Utente creato: {u['id']} ({u['username']})")


def cmd_reset_password(args: argparse.Namespace) -> None:
    u = get_utente_by_username(args.username)
    if not u:
        print("Utente non trovato.")
        raise SystemExit(2)
    cambia_password(u.id, args.password, args.password, da_admin=True)
    print(f"OK: password di '{u.username}' aggiornata.")


def cmd_export(args: argparse.Namespace) -> None:
    dal = date.fromisoformat(args.dal) if args.dal else None
    al = date.fromisoformat(args.al) if args.al else None
    items = lista_appuntamenti_flat(utente_id=args.utente_id, paziente_id=args.paziente_id, dal=dal, al=al)

    contenuto = esporta_xlsx(items) if args.formato == "xlsx" else esporta_pdf(items)
    destinazione = Path(args.output or nome_file(args.formato))
    destinazione.write_bytes(contenuto)
    print(f"Esportati {len(items)} appuntamenti in {destinazione}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="centro-aba", description="CLI Centro ABA (amministrazione e export)")
    sub = p.add_subparsers(required=True)

    p_init = sub.add_parser("init", help="Crea DB e carica seed")
    p_init.set_defaults(func=cmd_init)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument("entity", choices=["utenti", "pazienti", "tipi"])
    p_list.set_defaults(func=cmd_list)

    p_addp = sub.add_parser("add-patient", help="Crea paziente")
    p_addp.add_argument("--nome", required=True)
    p_addp.add_argument("--email", default=None)
    p_addp.add_argument("--telefono", default=None)
    p_addp.set_defaults(func=cmd_add_patient)

    p_addu = sub.add_parser("add-user", help="Crea professionista")
    p_addu.add_argument("--nome", required=True)
    p_addu.add_argument("--username", required=True)
    p_addu.add_argument("--password", required=True)
    p_addu.add_argument("--professione", default=None)
    p_addu.add_argument("--admin", action="store_true", help="Crea l'utente come amministratore")
    p_addu.set_defaults(func=cmd_add_user)

    p_reset = sub.add_parser("reset-password", help="Reimposta la password di un utente")
    p_reset.add_argument("username")
    p_reset.add_argument("--password", required=True)
    p_reset.set_defaults(func=cmd_reset_password)

    p_exp = sub.add_parser("export", help="Esporta appuntamenti (xlsx/pdf)")
    p_exp.add_argument("--formato", choices=["xlsx", "pdf"], default="xlsx")
    p_exp.add_argument("--utente-id", type=int, default=None)
    p_exp.add_argument("--paziente-id", type=int, default=None)
    p_exp.add_argument("--dal", default=None, help="ISO date es: 2026-01-01")
    p_exp.add_argument("--al", default=None, help="ISO date es: 2026-01-31")
    p_exp.add_argument("--output", default=None)
    p_exp.set_defaults(func=cmd_export)

    return p


def main(argv: list[str] | None = None) -> None:
    setup_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # garantisce tabelle
    try:
        args.func(args)
    except ValueError as e:
        print(f"Errore: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
