#!/usr/bin/env python3
"""
Crée (ou promeut) un compte à rôle élevé, pour administrer une base vide.

Usage :
    python scripts/create_admin.py --platoon-num 0001 --name "Admin" --birthday 1990-01-31 --role ROLE_ADMIN

Si --password est omis, il est demandé de manière sécurisée.
Le compte existant portant ce numéro de peloton est promu et son mot de passe remplacé.
"""

import argparse
import getpass
import sys
from datetime import date

from sqlalchemy import select

from roster.database import Base, SessionLocal, engine
from roster.models.soldier import Authority, Soldier
from roster.security import hash_password


def main() -> None:
    ap = argparse.ArgumentParser(description="Crée ou promeut un compte administrateur.")
    ap.add_argument("--platoon-num", required=True, help="Numéro de peloton (identifiant de connexion)")
    ap.add_argument("--name", required=True)
    ap.add_argument("--birthday", required=True, type=date.fromisoformat, help="AAAA-MM-JJ")
    ap.add_argument("--generation", type=int, default=1)
    ap.add_argument("--unit", default="0-0-0", help="bataillon-compagnie-peloton")
    ap.add_argument("--phone", default="-")
    ap.add_argument("--role", choices=[a.value for a in Authority if a.is_elevated], default="ROLE_ADMIN")
    ap.add_argument("--password", help="Si omis, demandé de manière sécurisée.")
    args = ap.parse_args()

    battalion, company, platoon = (args.unit.split("-") + ["0", "0", "0"])[:3]
    password = args.password or getpass.getpass("Mot de passe : ")
    if not password:
        print("[!] Mot de passe vide refusé.", file=sys.stderr)
        sys.exit(1)

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        soldier = db.execute(
            select(Soldier).where(Soldier.platoon_num == args.platoon_num)
        ).scalar_one_or_none()

        if soldier is None:
            soldier = Soldier(
                generation=args.generation,
                battalion=battalion,
                company=company,
                platoon=platoon,
                platoon_num=args.platoon_num,
                name=args.name,
                birthday=args.birthday,
                phone_number=args.phone,
                log_in_fail_cnt=0,
            )
            db.add(soldier)

        soldier.authority = Authority(args.role)
        soldier.password = hash_password(password)
        soldier.log_in_fail_cnt = 0
        db.commit()
        print(f"[+] Compte {args.platoon_num} : {args.role}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
