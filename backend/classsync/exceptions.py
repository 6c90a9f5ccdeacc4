"""
Exceptions métier de ClassSync.

Toutes héritent de ValueError : les services lèvent, les routers REST et la
passerelle temps réel traduisent (code HTTP ou événement d'erreur).
"""


class ClassSyncError(ValueError):
    """Erreur métier générique, porte le code HTTP correspondant."""
    status_code = 400


class ValidationFailed(ClassSyncError):
    """Données invalides (quiz mal formé, message vide, nombre de groupes ≤ 0...)."""
    status_code = 422


class Forbidden(ClassSyncError):
    """L'appelant n'a pas le droit d'effectuer cette action."""
    status_code = 403


class NotFound(ClassSyncError):
    status_code = 404


class Conflict(ClassSyncError):
    """Conflit avec l'état existant (soumission en double, déjà inscrit...)."""
    status_code = 409


class PersistenceError(ClassSyncError):
    """La base de données a refusé ou n'a pas pu enregistrer l'écriture."""
    status_code = 503


class ExternalServiceError(ClassSyncError):
    """Le fournisseur externe (IA) a échoué."""
    status_code = 502

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code
