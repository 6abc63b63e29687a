"""
Contrôle d'accès aux fiches soldats.

Chaque action est identifiée par une permission explicite. La table POLICY associe
(rôle de l'appelant, propriétaire de la fiche ?) à l'ensemble des permissions accordées.
"""

import enum
import logging
import uuid

from roster.exceptions import AuthorizationError
from roster.models.soldier import Authority
from roster.schemas.soldier import Principal

logger = logging.getLogger(__name__)


class Permission(str, enum.Enum):
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CREATE = "CREATE"
    IMPORT = "IMPORT"
    LIST = "LIST"
    UNLOCK = "UNLOCK"


ALL_PERMISSIONS = frozenset(Permission)
OWNER_PERMISSIONS = frozenset({Permission.READ, Permission.UPDATE})

# (rôle, est_propriétaire) → permissions accordées
POLICY: dict[tuple[Authority, bool], frozenset[Permission]] = {
    (Authority.ROLE_SOLDIER, True): OWNER_PERMISSIONS,
    (Authority.ROLE_SOLDIER, False): frozenset(),
    (Authority.ROLE_MANAGER, True): ALL_PERMISSIONS,
    (Authority.ROLE_MANAGER, False): ALL_PERMISSIONS,
    (Authority.ROLE_ADMIN, True): ALL_PERMISSIONS,
    (Authority.ROLE_ADMIN, False): ALL_PERMISSIONS,
}


def is_allowed(authority: Authority, is_owner: bool, permission: Permission) -> bool:
    return permission in POLICY.get((authority, is_owner), frozenset())


def authorize(
    soldier_id: uuid.UUID,
    principal: Principal,
    permission: Permission,
    action_label: str,
) -> Authority:
    """
    Vérifie que l'appelant peut effectuer l'action sur la fiche `soldier_id`.
    Retourne le rôle de l'appelant (utilisé pour les règles de changement de mot de passe).
    Lève AuthorizationError sinon.
    """
    is_owner = principal.soldier_id == soldier_id
    if not is_allowed(principal.authority, is_owner, permission):
        logger.warning(
            "Accès refusé : %s (%s) → %s sur %s",
            principal.platoon_num, principal.authority.value, permission.value, soldier_id,
        )
        raise AuthorizationError(f"Vous n'avez pas le droit de {action_label} cette fiche.")
    return principal.authority


def ensure_permission(principal: Principal, permission: Permission, action_label: str) -> Authority:
    """Vérification pour les actions qui ne visent pas une fiche précise (liste, création, import)."""
    if not is_allowed(principal.authority, False, permission):
        logger.warning(
            "Accès refusé : %s (%s) → %s",
            principal.platoon_num, principal.authority.value, permission.value,
        )
        raise AuthorizationError(f"Vous n'avez pas le droit de {action_label}.")
    return principal.authority
