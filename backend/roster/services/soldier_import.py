"""
Service d'import Excel pour les soldats.
Gère la lecture des classeurs (.xlsx via openpyxl, .xls via xlrd), la conversion
des colonnes, la détection des doublons et l'insertion en une seule transaction.

Format attendu, pour chaque feuille : ligne 1 = en-tête (ignorée), puis 9 colonnes
dans l'ordre de IMPORT_COLUMNS. Une cellule de type inattendu annule l'import complet ;
un numéro de peloton déjà connu (en base ou plus haut dans le fichier) est ignoré.
"""

import io
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterator, NamedTuple, Optional, Tuple
from zipfile import BadZipFile

import openpyxl
import xlrd
from xlrd.compdoc import CompDocError
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from roster.exceptions import DuplicatePlatoonNumError, ImportCellError, UnsupportedFileError
from roster.models.soldier import Soldier
from roster.schemas.soldier import SoldierCreate, SoldierImportReport
from roster.services.soldier_service import build_soldier, is_platoon_num_violation

logger = logging.getLogger(__name__)

RowValues = Tuple[Any, ...]


# --- Convertisseurs de cellules (lèvent ValueError si le type est inattendu) ---

def _to_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("valeur numérique attendue")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError("entier attendu")
    return int(value)


def _to_code(value: Any) -> str:
    """Cellule numérique stockée comme texte (bataillon, compagnie, ...)."""
    return str(_to_int(value))


def _to_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("texte attendu")
    return value.strip()


def _to_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("texte attendu")
    return value.strip() or None


def _to_date(value: Any) -> date:
    # Les classeurs stockent des dates naïves : elles sont prises en heure locale.
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise ValueError("date attendue")


class ImportColumn(NamedTuple):
    name: str
    label: str
    converter: Callable[[Any], Any]


IMPORT_COLUMNS = (
    ImportColumn("generation", "génération", _to_int),
    ImportColumn("battalion", "bataillon", _to_code),
    ImportColumn("company", "compagnie", _to_code),
    ImportColumn("platoon", "peloton", _to_code),
    ImportColumn("platoon_num", "numéro de peloton", _to_code),
    ImportColumn("name", "nom", _to_text),
    ImportColumn("birthday", "date de naissance", _to_date),
    ImportColumn("phone_number", "téléphone", _to_text),
    ImportColumn("home_tel", "téléphone domicile", _to_optional_text),
)
COLUMN_LABELS = {c.name: c.label for c in IMPORT_COLUMNS}


# --- Lecture des classeurs ---

def _read_xlsx(content: bytes) -> Iterator[Tuple[str, int, RowValues]]:
    """Produit (feuille, numéro de ligne 1-based, valeurs) pour un classeur .xlsx."""
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise UnsupportedFileError("Fichier Excel (.xlsx) illisible ou corrompu.") from exc

    try:
        for sheet in workbook.worksheets:
            for row_num, values in enumerate(sheet.iter_rows(values_only=True), start=1):
                yield sheet.title, row_num, tuple(values)
    finally:
        workbook.close()


def _xls_cell_value(cell: xlrd.sheet.Cell, datemode: int) -> Any:
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate_as_datetime(cell.value, datemode)
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    return cell.value


def _read_xls(content: bytes) -> Iterator[Tuple[str, int, RowValues]]:
    """Produit (feuille, numéro de ligne 1-based, valeurs) pour un classeur .xls (BIFF)."""
    try:
        book = xlrd.open_workbook(file_contents=content)
    except (xlrd.XLRDError, CompDocError) as exc:
        raise UnsupportedFileError("Fichier Excel (.xls) illisible ou corrompu.") from exc

    for sheet in book.sheets():
        for index in range(sheet.nrows):
            values = tuple(_xls_cell_value(cell, book.datemode) for cell in sheet.row(index))
            yield sheet.name, index + 1, values


READERS: dict[str, Callable[[bytes], Iterator[Tuple[str, int, RowValues]]]] = {
    ".xlsx": _read_xlsx,
    ".xls": _read_xls,
}


def _is_blank(values: RowValues) -> bool:
    return all(v is None or (isinstance(v, str) and not v.strip()) for v in values)


def _parse_row(sheet: str, row_num: int, values: RowValues) -> SoldierCreate:
    """Convertit une ligne selon IMPORT_COLUMNS. Lève ImportCellError sur la première cellule invalide."""
    padded = tuple(values) + (None,) * max(0, len(IMPORT_COLUMNS) - len(values))

    fields = {}
    for column, value in zip(IMPORT_COLUMNS, padded):
        try:
            fields[column.name] = column.converter(value)
        except (ValueError, TypeError):
            logger.warning("Import : cellule invalide %s!L%d '%s' = %r", sheet, row_num, column.label, value)
            raise ImportCellError(sheet, row_num, column.label, value)

    try:
        return SoldierCreate(**fields)
    except ValidationError as exc:
        name = exc.errors()[0]["loc"][0]
        raise ImportCellError(sheet, row_num, COLUMN_LABELS.get(name, str(name)), fields.get(name))


def import_soldiers(db: Session, filename: Optional[str], content: Optional[bytes]) -> SoldierImportReport:
    """
    Importe les soldats d'un classeur Excel.

    Règles :
    - Extension .xlsx ou .xls obligatoire, sinon UnsupportedFileError
    - Toutes les lignes sont converties avant la moindre écriture :
      une cellule invalide (ImportCellError) n'insère rien
    - Doublon BDD ou intra-fichier sur le numéro de peloton : ligne ignorée sans erreur
    - Mot de passe initial identique à la création manuelle (date de naissance AAMMJJ)
    """
    if not filename or not content:
        raise UnsupportedFileError()

    reader = READERS.get(Path(filename).suffix.lower())
    if reader is None:
        raise UnsupportedFileError()

    rows: list[SoldierCreate] = []
    for sheet, row_num, values in reader(content):
        if row_num == 1 or _is_blank(values):
            continue  # en-tête ou ligne vide
        rows.append(_parse_row(sheet, row_num, values))

    # Détection doublons contre la BDD (batch query)
    platoon_nums = [r.platoon_num for r in rows]
    existing: set[str] = set()
    if platoon_nums:
        existing = set(db.execute(
            select(Soldier.platoon_num).where(Soldier.platoon_num.in_(platoon_nums))
        ).scalars().all())

    seen_in_file: set[str] = set()
    to_insert: list[Soldier] = []
    skipped: list[str] = []

    for data in rows:
        if data.platoon_num in existing or data.platoon_num in seen_in_file:
            skipped.append(data.platoon_num)
            continue
        seen_in_file.add(data.platoon_num)
        to_insert.append(build_soldier(data))

    if to_insert:
        db.add_all(to_insert)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if not is_platoon_num_violation(exc):
                raise
            raise DuplicatePlatoonNumError(
                "Import annulé : un numéro de peloton a été enregistré entre-temps."
            )

    logger.info(
        "Import %s : %d lignes, %d insérées, %d doublons ignorés",
        filename, len(rows), len(to_insert), len(skipped),
    )

    return SoldierImportReport(
        total_rows=len(rows),
        inserted=len(to_insert),
        skipped_duplicates=len(skipped),
        skipped_platoon_nums=skipped,
    )
