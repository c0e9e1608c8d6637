"""
Erreurs métier du moteur de couverture.

Toutes dérivent de ValueError : les services lèvent, les routers les
attrapent et les traduisent en code HTTP via `dependencies.http_error`.
StorageError est traduite en 503 par le handler de app.main.
Aucune n'est levée après une écriture partielle.
"""


class NotFoundError(ValueError):
    """Voyage, voyageur ou sinistre absent du store."""


class CapacityError(ValueError):
    """Pas assez de crédit non alloué pour attribuer une place."""


class NotEligibleError(ValueError):
    """Voyageur non confirmé, sans accord parental, ou non couvert alors qu'il devrait l'être."""


class InvalidInputError(ValueError):
    """Donnée invalide ou opération interdite dans l'état courant (voyage archivé, etc.)."""


class StorageError(RuntimeError):
    """Échec de la persistance sous-jacente (transaction annulée)."""
