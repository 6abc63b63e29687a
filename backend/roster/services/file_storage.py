"""
Stockage des fichiers téléversés sur disque.

Arborescence : UPLOAD_DIR/<catégorie>/<génération>/<unité>/<uuid><extension>
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

from fastapi import UploadFile
from pydantic import BaseModel

from roster.config import settings
from roster.exceptions import StoragePathError, UnsupportedFileError

logger = logging.getLogger(__name__)

PROFILE_CATEGORY = "profile"
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp"}
ALLOWED_EXTENSIONS = {PROFILE_CATEGORY: IMAGE_EXTENSIONS}


class FileInfo(BaseModel):
    """Métadonnées d'un fichier stocké."""
    original_name: str
    file_path: str
    size: int
    content_type: Optional[str] = None


def store_files(
    files: Iterable[UploadFile],
    category: str,
    generation: int,
    belong: str,
    upload_dir: Optional[str] = None,
) -> List[FileInfo]:
    """
    Enregistre les fichiers et retourne leurs métadonnées dans l'ordre reçu.
    Les entrées sans nom de fichier sont ignorées.
    Lève UnsupportedFileError si l'extension n'est pas admise pour la catégorie.
    Lève StoragePathError si l'unité ferait sortir le dossier cible de UPLOAD_DIR.
    """
    uploads = [f for f in files if f is not None and f.filename]

    allowed = ALLOWED_EXTENSIONS.get(category)
    for upload in uploads:
        ext = Path(upload.filename).suffix.lower()
        if allowed is not None and ext not in allowed:
            raise UnsupportedFileError(
                f"Extension '{ext or upload.filename}' non autorisée pour la catégorie '{category}'."
            )

    root = Path(upload_dir or settings.UPLOAD_DIR).resolve()
    target_dir = (root / category / str(generation) / belong).resolve()
    if not target_dir.is_relative_to(root):
        logger.warning("Chemin de stockage hors de %s refusé : %s", root, target_dir)
        raise StoragePathError()
    target_dir.mkdir(parents=True, exist_ok=True)

    stored: List[FileInfo] = []
    for upload in uploads:
        ext = Path(upload.filename).suffix.lower()
        dest_path = target_dir / f"{uuid.uuid4().hex}{ext}"

        upload.file.seek(0)
        with open(dest_path, "wb") as out:
            shutil.copyfileobj(upload.file, out)

        stored.append(FileInfo(
            original_name=upload.filename,
            file_path=str(dest_path),
            size=dest_path.stat().st_size,
            content_type=upload.content_type,
        ))
        logger.info("Fichier stocké : %s → %s", upload.filename, dest_path)

    return stored


def remove_file(file_path: Optional[str]) -> None:
    """Supprime un fichier stocké ; un fichier déjà absent est ignoré."""
    if not file_path:
        return
    Path(file_path).unlink(missing_ok=True)
    logger.info("Fichier supprimé : %s", file_path)
