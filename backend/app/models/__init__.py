# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant l'appel à Base.metadata.create_all() au démarrage.

from app.models.record import Record  # noqa: F401
