"""
Router d'authentification.
Les autres routes s'authentifient en HTTP Basic ; /login permet au client
de vérifier les identifiants et de récupérer la fiche du soldat connecté.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from roster.database import get_db
from roster.schemas.soldier import LoginRequest, SoldierResponse
from roster.services.auth_service import authenticate

router = APIRouter(prefix="/api/v1/auth", tags=["Authentification"])


@router.post("/login", response_model=SoldierResponse, summary="Se connecter")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """
    Vérifie numéro de peloton + mot de passe.
    - 401 : identifiants incorrects (l'échec est comptabilisé)
    - 423 : compte bloqué après 5 échecs
    """
    soldier = authenticate(db, data.platoon_num, data.password)
    return SoldierResponse.model_validate(soldier)
