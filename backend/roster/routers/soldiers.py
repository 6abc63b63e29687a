"""
Router pour les soldats.
Import Excel (POST /api/v1/soldiers/upload)
Listage, création, consultation, modification, suppression
Déblocage du compte et photo de profil
"""

import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from roster.config import settings
from roster.database import get_db
from roster.dependencies import get_current_principal, require_permission
from roster.schemas.soldier import (
    Principal,
    SoldierCreate,
    SoldierImportReport,
    SoldierResponse,
    SoldierUpdate,
)
from roster.services import soldier_import, soldier_service
from roster.services.authorization import Permission

router = APIRouter(prefix="/api/v1/soldiers", tags=["Soldats"])


@router.get("", response_model=List[SoldierResponse], summary="Lister tous les soldats")
def list_soldiers(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.LIST, "lister les soldats")),
):
    """Retourne tous les soldats, génération la plus récente en premier."""
    return soldier_service.get_soldiers(db)


@router.post("", response_model=SoldierResponse, status_code=201, summary="Créer un soldat")
def create_soldier(
    data: SoldierCreate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.CREATE, "créer un soldat")),
):
    """Crée un soldat. Mot de passe initial : date de naissance au format AAMMJJ."""
    return soldier_service.create_soldier(db, data)


@router.post("/upload", response_model=SoldierImportReport, summary="Importer des soldats via Excel")
async def upload_soldiers(
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission(Permission.IMPORT, "importer des soldats")),
):
    """
    Importe des soldats depuis un classeur Excel (.xlsx ou .xls).

    Chaque feuille : ligne 1 = en-tête, puis les colonnes
    génération, bataillon, compagnie, peloton, numéro de peloton, nom,
    date de naissance, téléphone, téléphone domicile.

    Les numéros de peloton déjà enregistrés sont ignorés et listés dans le rapport.
    """
    content = await file.read() if file is not None else None

    if content and len(content) > settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024:
        raise HTTPException(
            status_code=400,
            detail=f"Fichier trop volumineux. Taille maximale : {settings.MAX_UPLOAD_SIZE_MB} Mo."
        )

    return soldier_import.import_soldiers(db, file.filename if file else None, content)


@router.get("/{soldier_id}", response_model=SoldierResponse, summary="Détail d'un soldat")
def get_soldier(
    soldier_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return soldier_service.get_soldier(db, soldier_id, principal)


@router.put("/{soldier_id}", response_model=SoldierResponse, summary="Modifier un soldat")
def update_soldier(
    soldier_id: uuid.UUID,
    data: SoldierUpdate,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Met à jour les champs fournis. Un soldat doit fournir son mot de passe actuel pour le changer."""
    return soldier_service.update_soldier(db, soldier_id, data, principal)


@router.delete("/{soldier_id}", status_code=204, summary="Supprimer un soldat")
def delete_soldier(
    soldier_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    soldier_service.delete_soldier(db, soldier_id, principal)


@router.post("/{soldier_id}/unlock", response_model=SoldierResponse, summary="Débloquer un compte")
def unlock_soldier(
    soldier_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Remet à zéro le compteur d'échecs de connexion."""
    return soldier_service.unlock_soldier(db, soldier_id, principal)


@router.put("/{soldier_id}/profile-picture", response_model=SoldierResponse,
            summary="Téléverser la photo de profil")
def set_profile_picture(
    soldier_id: uuid.UUID,
    files: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return soldier_service.set_profile_picture(db, soldier_id, files, principal)


@router.get("/{soldier_id}/profile-picture", summary="Photo de profil")
def get_profile_picture(
    soldier_id: uuid.UUID,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    path = soldier_service.get_profile_picture(db, soldier_id, principal)
    if path is None or not Path(path).is_file():
        raise HTTPException(status_code=404, detail="Aucune photo de profil.")
    return FileResponse(path)
