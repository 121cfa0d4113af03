"""
Backend applicativo Centro ABA.

Struttura:
- config.py       : configurazione da variabili d'ambiente (.env) e logging
- db.py           : engine e sessioni SQLAlchemy
- auth_models.py  : utenti/professionisti e sessioni di login
- models.py       : tipi di trattamento, pazienti, appuntamenti, prezzi specifici
- auth_*.py       : hash password, token di sessione, gestione utenti
- services.py     : CRUD di dominio
- pricing.py      : prezzo suggerito (paziente -> professionista -> listino)
- report.py       : filtri e aggregazioni per dashboard e report
- calendario.py   : viste calendario mese/settimana/giorno
- export.py       : export Excel e PDF
- api_main.py     : API REST (FastAPI)
- seed.py         : dati iniziali (admin, tipi di trattamento)
- cli.py          : amministrazione da riga di comando
"""
