"""
Authentification par numéro de peloton + mot de passe.
Pilote le compteur d'échecs : blocage vérifié avant le mot de passe,
échec enregistré sur mot de passe erroné, compteur remis à zéro sur succès.
"""

import logging

from sqlalchemy.orm import Session

from roster.exceptions import AuthenticationError
from roster.models.soldier import Soldier
from roster.schemas.soldier import Principal
from roster.security import verify_password
from roster.services import soldier_service

logger = logging.getLogger(__name__)


def authenticate(db: Session, platoon_num: str, password: str) -> Soldier:
    soldier = soldier_service.get_by_platoon_num(db, platoon_num)
    soldier_service.check_lockout(soldier)

    if not verify_password(password, soldier.password):
        soldier_service.record_login_failure(db, soldier)
        raise AuthenticationError()

    if soldier.log_in_fail_cnt:
        soldier_service.clear_failures(db, soldier)
    return soldier


def to_principal(soldier: Soldier) -> Principal:
    return Principal(
        soldier_id=soldier.id,
        platoon_num=soldier.platoon_num,
        authority=soldier.authority,
    )
