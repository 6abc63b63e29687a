"""
Schémas Pydantic pour les soldats.

Note : on importe datetime en tant que module (dt) pour éviter le conflit de nommage
entre le champ `birthday` typé date et le type `datetime.date` dans Pydantic v2.
"""

import uuid
import datetime as dt
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from roster.models.soldier import Authority


def _check_unit_code(v: str) -> str:
    """Bataillon, compagnie et section forment un segment du chemin de stockage."""
    if not v.isalnum():
        raise ValueError("Le code d'unité ne peut contenir que des lettres et des chiffres.")
    return v


class SoldierCreate(BaseModel):
    """Schéma de création manuelle d'un soldat (POST /soldiers)."""
    generation: int
    battalion: str
    company: str
    platoon: str
    platoon_num: str
    name: str
    birthday: dt.date
    phone_number: str
    home_tel: Optional[str] = None

    @field_validator("generation")
    @classmethod
    def generation_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("La génération doit être un entier positif.")
        return v

    @field_validator("battalion", "company", "platoon", "platoon_num", "name", "phone_number")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("battalion", "company", "platoon")
    @classmethod
    def unit_code(cls, v: str) -> str:
        return _check_unit_code(v)


class SoldierUpdate(BaseModel):
    """
    Schéma de mise à jour (PUT /soldiers/{id}).
    Les champs absents ne sont pas modifiés. `password` est le nouveau mot de passe,
    `current_password` le mot de passe actuel (obligatoire pour un simple soldat).
    """
    generation: Optional[int] = None
    battalion: Optional[str] = None
    company: Optional[str] = None
    platoon: Optional[str] = None
    platoon_num: Optional[str] = None
    name: Optional[str] = None
    birthday: Optional[dt.date] = None
    phone_number: Optional[str] = None
    home_tel: Optional[str] = None
    password: Optional[str] = None
    current_password: Optional[str] = None

    @field_validator("generation", "birthday", "battalion", "company", "platoon",
                     "platoon_num", "name", "phone_number", mode="before")
    @classmethod
    def not_null(cls, v):
        # Champ absent = inchangé ; un null explicite viderait une colonne obligatoire
        if v is None:
            raise ValueError("Le champ ne peut pas être nul.")
        return v

    @field_validator("generation")
    @classmethod
    def generation_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("La génération doit être un entier positif.")
        return v

    @field_validator("battalion", "company", "platoon", "platoon_num", "name", "phone_number")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("battalion", "company", "platoon")
    @classmethod
    def unit_code(cls, v: str) -> str:
        return _check_unit_code(v)


class SoldierResponse(BaseModel):
    """Projection d'un soldat renvoyée au client (sans le hash du mot de passe)."""
    id: uuid.UUID
    generation: int
    battalion: str
    company: str
    platoon: str
    platoon_num: str
    name: str
    birthday: dt.date
    phone_number: str
    home_tel: Optional[str]
    profile_picture_path: Optional[str] = None
    log_in_fail_cnt: int = 0
    authority: Authority
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SoldierImportReport(BaseModel):
    """Rapport retourné après un import Excel."""
    total_rows: int
    inserted: int
    skipped_duplicates: int
    skipped_platoon_nums: List[str] = []


class Principal(BaseModel):
    """Appelant authentifié, résolu depuis les identifiants HTTP Basic."""
    soldier_id: uuid.UUID
    platoon_num: str
    authority: Authority


class LoginRequest(BaseModel):
    platoon_num: str
    password: str
