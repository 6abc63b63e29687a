"""
Dépendances FastAPI d'authentification et d'autorisation.

Les identifiants sont transmis en HTTP Basic : nom d'utilisateur = numéro de peloton.
"""

from typing import Callable

from fastapi import Depends
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from sqlalchemy.orm import Session

from roster.database import get_db
from roster.schemas.soldier import Principal
from roster.services.auth_service import authenticate, to_principal
from roster.services.authorization import Permission, ensure_permission

security = HTTPBasic()


def get_current_principal(
    credentials: HTTPBasicCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Principal:
    """Authentifie l'appelant à chaque requête. Les erreurs métier sont converties par main.py."""
    soldier = authenticate(db, credentials.username, credentials.password)
    return to_principal(soldier)


def require_permission(permission: Permission, action_label: str) -> Callable[[Principal], Principal]:
    """
    Fabrique de dépendance pour les actions qui ne visent pas une fiche précise.
    Usage : Depends(require_permission(Permission.LIST, "lister les soldats"))
    """

    def _permission_dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        ensure_permission(principal, permission, action_label)
        return principal

    return _permission_dependency
