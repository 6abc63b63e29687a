"""
Erreurs métier de l'API Roster.

Chaque erreur porte le code HTTP sous lequel elle est renvoyée au client ;
le handler global de main.py se charge de la conversion en réponse JSON.
"""

from typing import Any, Optional


class RosterError(Exception):
    """Erreur métier de base."""
    status_code = 400
    default_detail = "Requête invalide."

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class SoldierNotFoundError(RosterError):
    status_code = 404
    default_detail = "Soldat introuvable."


class DuplicatePlatoonNumError(RosterError):
    status_code = 409
    default_detail = "Ce numéro de peloton est déjà enregistré."


class AuthorizationError(RosterError):
    status_code = 403
    default_detail = "Accès refusé."


class PasswordChangeError(RosterError):
    status_code = 400


class UnsupportedFileError(RosterError):
    status_code = 400
    default_detail = "Veuillez téléverser un fichier Excel (.xls ou .xlsx)."


class StoragePathError(RosterError):
    status_code = 400
    default_detail = "Emplacement de stockage invalide."


class ImportCellError(RosterError):
    """Cellule de type inattendu : l'import complet est annulé."""
    status_code = 422

    def __init__(self, sheet: str, row: int, column: str, value: Any):
        self.sheet = sheet
        self.row = row
        self.column = column
        self.value = value
        super().__init__(
            f"Feuille '{sheet}', ligne {row} : valeur invalide pour la colonne "
            f"'{column}' ({value!r})."
        )


class AccountLockedError(RosterError):
    status_code = 423
    default_detail = (
        "Compte bloqué après 5 échecs d'authentification. "
        "En cas d'oubli du mot de passe, contactez un administrateur."
    )


class AuthenticationError(RosterError):
    """Identifiants invalides. Ne révèle pas si le numéro de peloton existe."""
    status_code = 401
    default_detail = "Numéro de peloton ou mot de passe incorrect."
