"""
Modèle SQLAlchemy pour la table soldiers.
Le numéro de peloton (platoon_num) sert d'identifiant de connexion : la contrainte
UNIQUE en base est la vraie garantie contre les doublons concurrents.
"""

import enum
import uuid

from sqlalchemy import Column, Date, DateTime, Enum, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID

from roster.database import Base

PLATOON_NUM_CONSTRAINT = "uq_soldiers_platoon_num"


class Authority(str, enum.Enum):
    """Rôle d'un compte. ROLE_SOLDIER est le rôle de base, les autres sont élevés."""
    ROLE_SOLDIER = "ROLE_SOLDIER"
    ROLE_MANAGER = "ROLE_MANAGER"
    ROLE_ADMIN = "ROLE_ADMIN"

    @property
    def is_elevated(self) -> bool:
        return self is not Authority.ROLE_SOLDIER


class Soldier(Base):
    __tablename__ = "soldiers"
    __table_args__ = (UniqueConstraint("platoon_num", name=PLATOON_NUM_CONSTRAINT),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    generation = Column(Integer, nullable=False, index=True)
    battalion = Column(String(20), nullable=False)
    company = Column(String(20), nullable=False)
    platoon = Column(String(20), nullable=False)
    platoon_num = Column(String(20), nullable=False)
    name = Column(String(100), nullable=False)
    birthday = Column(Date, nullable=False)
    phone_number = Column(String(30), nullable=False)
    home_tel = Column(String(30), nullable=True)
    password = Column(String(255), nullable=False)  # hash bcrypt uniquement
    profile_picture_path = Column(String(500), nullable=True)
    log_in_fail_cnt = Column(Integer, nullable=False, default=0)
    authority = Column(Enum(Authority, name="authority"), nullable=False, default=Authority.ROLE_SOLDIER)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def belong(self) -> str:
        """Unité d'appartenance : bataillon-compagnie-section."""
        return f"{self.battalion}-{self.company}-{self.platoon}"
