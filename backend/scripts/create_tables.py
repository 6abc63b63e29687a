"""
Crée les tables déclarées sur Base.metadata (base vide ou nouvelle table).
Usage : python scripts/create_tables.py   (depuis backend/)
"""

from sqlalchemy import inspect

from roster.database import Base, engine
import roster.models  # noqa: F401 — enregistre les tables sur Base.metadata


def main() -> None:
    Base.metadata.create_all(bind=engine)
    print("tables:", inspect(engine).get_table_names())


if __name__ == "__main__":
    main()
