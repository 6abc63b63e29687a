"""
Service métier pour la gestion des soldats.
Création, mise à jour (dont changement de mot de passe), lecture, suppression,
compteur d'échecs de connexion et photo de profil.
"""

import re
import uuid
import logging
from typing import Iterable, Optional

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from roster.exceptions import (
    AccountLockedError,
    AuthenticationError,
    DuplicatePlatoonNumError,
    PasswordChangeError,
    SoldierNotFoundError,
)
from roster.models.soldier import PLATOON_NUM_CONSTRAINT, Authority, Soldier
from roster.schemas.soldier import Principal, SoldierCreate, SoldierResponse, SoldierUpdate
from roster.security import default_password, hash_password, verify_password
from roster.services.authorization import Permission, authorize
from roster.services.file_storage import PROFILE_CATEGORY, remove_file, store_files

logger = logging.getLogger(__name__)

MAX_LOGIN_FAILURES = 5

# 8 à 20 caractères, au moins une lettre, un chiffre et un caractère spécial
PASSWORD_REGEX = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)(?=.*[^A-Za-z\d\s])\S{8,20}$")


def create_soldier(db: Session, data: SoldierCreate) -> SoldierResponse:
    """
    Crée un soldat. Le mot de passe initial est sa date de naissance (AAMMJJ), hachée.
    Lève DuplicatePlatoonNumError si le numéro de peloton est déjà pris.
    """
    soldier = build_soldier(data)

    if _is_duplicate(db, soldier.platoon_num, soldier):
        raise DuplicatePlatoonNumError()

    db.add(soldier)
    _commit_or_duplicate(db)
    db.refresh(soldier)

    logger.info("Soldat créé : %s (%s)", soldier.platoon_num, soldier.id)
    return SoldierResponse.model_validate(soldier)


def build_soldier(data: SoldierCreate) -> Soldier:
    """Construit l'entité (non persistée) avec le mot de passe par défaut."""
    return Soldier(
        id=uuid.uuid4(),
        generation=data.generation,
        battalion=data.battalion,
        company=data.company,
        platoon=data.platoon,
        platoon_num=data.platoon_num,
        name=data.name,
        birthday=data.birthday,
        phone_number=data.phone_number,
        home_tel=data.home_tel,
        password=hash_password(default_password(data.birthday)),
        log_in_fail_cnt=0,
        authority=Authority.ROLE_SOLDIER,
    )


def update_soldier(
    db: Session, soldier_id: uuid.UUID, data: SoldierUpdate, principal: Principal
) -> SoldierResponse:
    """
    Met à jour les champs fournis d'un soldat.

    Règles mot de passe :
    - sans mot de passe actuel ni nouveau : le hash est conservé
    - sans mot de passe actuel mais avec un nouveau : refusé pour ROLE_SOLDIER,
      accepté (après validation) pour les rôles élevés
    - avec mot de passe actuel : il doit correspondre au hash et différer du nouveau
    """
    soldier = _get_or_raise(db, soldier_id)
    authority = authorize(soldier.id, principal, Permission.UPDATE, "modifier")

    new_hash = _resolve_password(soldier, data, authority)

    platoon_num = data.platoon_num if data.platoon_num is not None else soldier.platoon_num
    if _is_duplicate(db, platoon_num, soldier):
        raise DuplicatePlatoonNumError()

    update_data = data.model_dump(exclude_unset=True, exclude={"password", "current_password"})
    for field, value in update_data.items():
        setattr(soldier, field, value)
    if new_hash is not None:
        soldier.password = new_hash

    _commit_or_duplicate(db)
    db.refresh(soldier)

    logger.info("Soldat modifié : %s (%s)", soldier.platoon_num, soldier.id)
    return SoldierResponse.model_validate(soldier)


def get_soldier(db: Session, soldier_id: uuid.UUID, principal: Principal) -> SoldierResponse:
    soldier = _get_or_raise(db, soldier_id)
    authorize(soldier.id, principal, Permission.READ, "consulter")
    return SoldierResponse.model_validate(soldier)


def get_soldiers(db: Session) -> list[SoldierResponse]:
    """Retourne tous les soldats, de la génération la plus récente à la plus ancienne."""
    soldiers = db.execute(
        select(Soldier).order_by(Soldier.generation.desc())
    ).scalars().all()
    return [SoldierResponse.model_validate(s) for s in soldiers]


def get_by_platoon_num(db: Session, platoon_num: str) -> Soldier:
    """
    Recherche utilisée par l'authentification.
    Lève AuthenticationError (et non SoldierNotFoundError) pour ne pas révéler l'existence du compte.
    """
    soldier = _find_by_platoon_num(db, platoon_num)
    if soldier is None:
        raise AuthenticationError()
    return soldier


def delete_soldier(db: Session, soldier_id: uuid.UUID, principal: Principal) -> None:
    soldier = _get_or_raise(db, soldier_id)
    authorize(soldier.id, principal, Permission.DELETE, "supprimer")

    db.delete(soldier)
    db.commit()
    logger.info("Soldat supprimé : %s (%s)", soldier.platoon_num, soldier_id)


# --- Échecs de connexion ---

def record_login_failure(db: Session, soldier: Soldier) -> None:
    """Incrémente le compteur d'échecs, plafonné à MAX_LOGIN_FAILURES."""
    if soldier.log_in_fail_cnt < MAX_LOGIN_FAILURES:
        soldier.log_in_fail_cnt += 1
        db.commit()
    logger.warning(
        "Échec de connexion pour %s (%d/%d)",
        soldier.platoon_num, soldier.log_in_fail_cnt, MAX_LOGIN_FAILURES,
    )


def check_lockout(soldier: Soldier) -> None:
    if soldier.log_in_fail_cnt >= MAX_LOGIN_FAILURES:
        logger.warning("Connexion refusée, compte bloqué : %s", soldier.platoon_num)
        raise AccountLockedError()


def clear_failures(db: Session, soldier: Soldier) -> None:
    soldier.log_in_fail_cnt = 0
    db.commit()
    logger.info("Compteur d'échecs réinitialisé : %s", soldier.platoon_num)


def unlock_soldier(db: Session, soldier_id: uuid.UUID, principal: Principal) -> SoldierResponse:
    """Débloque un compte (réinitialisation explicite du compteur par un rôle élevé)."""
    soldier = _get_or_raise(db, soldier_id)
    authorize(soldier.id, principal, Permission.UNLOCK, "débloquer")
    clear_failures(db, soldier)
    db.refresh(soldier)
    return SoldierResponse.model_validate(soldier)


# --- Photo de profil ---

def set_profile_picture(
    db: Session,
    soldier_id: uuid.UUID,
    files: Iterable[UploadFile],
    principal: Optional[Principal] = None,
) -> SoldierResponse:
    """
    Stocke la photo via le service de fichiers (catégorie "profile") et
    associe le chemin du premier fichier stocké à la fiche.
    L'ancienne photo est supprimée après le commit ; en cas d'échec du commit,
    ce sont les nouveaux fichiers qui sont supprimés.
    """
    soldier = _get_or_raise(db, soldier_id)
    if principal is not None:
        authorize(soldier.id, principal, Permission.UPDATE, "modifier")

    stored = store_files(files, PROFILE_CATEGORY, soldier.generation, soldier.belong)

    if stored:
        previous_path = soldier.profile_picture_path
        soldier.profile_picture_path = stored[0].file_path
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            for info in stored:
                remove_file(info.file_path)
            raise
        if previous_path and previous_path != soldier.profile_picture_path:
            remove_file(previous_path)
        db.refresh(soldier)
        logger.info("Photo de profil enregistrée pour %s : %s", soldier.platoon_num, stored[0].file_path)

    return SoldierResponse.model_validate(soldier)


def get_profile_picture(
    db: Session, soldier_id: uuid.UUID, principal: Optional[Principal] = None
) -> Optional[str]:
    """Retourne le chemin de la photo de profil, ou None si aucune."""
    soldier = _get_or_raise(db, soldier_id)
    if principal is not None:
        authorize(soldier.id, principal, Permission.READ, "consulter")
    return soldier.profile_picture_path


# --- Helpers ---

def _get_or_raise(db: Session, soldier_id: uuid.UUID) -> Soldier:
    soldier = db.get(Soldier, soldier_id)
    if soldier is None:
        raise SoldierNotFoundError()
    return soldier


def _find_by_platoon_num(db: Session, platoon_num: str) -> Optional[Soldier]:
    return db.execute(
        select(Soldier).where(Soldier.platoon_num == platoon_num)
    ).scalar_one_or_none()


def _is_duplicate(db: Session, platoon_num: str, soldier: Soldier) -> bool:
    """True si un autre soldat que `soldier` porte déjà ce numéro de peloton."""
    existing = _find_by_platoon_num(db, platoon_num)
    return existing is not None and existing.id != soldier.id


def is_platoon_num_violation(exc: IntegrityError) -> bool:
    """True si l'IntegrityError provient de la contrainte UNIQUE sur platoon_num."""
    return PLATOON_NUM_CONSTRAINT in str(exc.orig)


def _commit_or_duplicate(db: Session) -> None:
    """Commit ; la contrainte UNIQUE en base couvre les insertions concurrentes."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if is_platoon_num_violation(exc):
            raise DuplicatePlatoonNumError()
        raise


def _validate_new_password(password: str) -> None:
    if not PASSWORD_REGEX.match(password):
        raise PasswordChangeError(
            "Le mot de passe doit contenir 8 à 20 caractères, dont au moins "
            "une lettre, un chiffre et un caractère spécial."
        )


def _resolve_password(soldier: Soldier, data: SoldierUpdate, authority: Authority) -> Optional[str]:
    """Retourne le nouveau hash à enregistrer, ou None pour conserver l'actuel."""
    if data.current_password is None:
        if data.password is None:
            return None
        if authority == Authority.ROLE_SOLDIER:
            raise PasswordChangeError("Veuillez saisir votre mot de passe actuel.")
        _validate_new_password(data.password)
        return hash_password(data.password)

    if data.current_password == data.password:
        raise PasswordChangeError("Le nouveau mot de passe est identique au mot de passe actuel.")
    if not verify_password(data.current_password, soldier.password):
        raise PasswordChangeError("Mot de passe actuel incorrect.")
    if data.password is None:
        raise PasswordChangeError("Veuillez saisir le nouveau mot de passe.")
    _validate_new_password(data.password)
    return hash_password(data.password)
