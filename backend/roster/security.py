"""
Hachage des mots de passe (bcrypt).
Le mot de passe par défaut d'un soldat est sa date de naissance au format AAMMJJ.
"""

from datetime import date

import bcrypt

from roster.config import settings

DEFAULT_PASSWORD_FORMAT = "%y%m%d"


def hash_password(password: str) -> str:
    """Retourne le hash bcrypt (sel inclus) du mot de passe en clair."""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Vérifie un mot de passe en clair contre un hash bcrypt. Un hash malformé ne correspond jamais."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def default_password(birthday: date) -> str:
    return birthday.strftime(DEFAULT_PASSWORD_FORMAT)
