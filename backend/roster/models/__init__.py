# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant la création du schéma (scripts/create_tables.py).

from roster.models.soldier import Authority, Soldier  # noqa: F401
