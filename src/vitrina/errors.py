"""
Errores del motor.

Solo representan fallas que deben llegar al caller (autorización o input
inválido). Las degradaciones (embedding caído, query lenta, sin candidatos)
nunca se modelan como excepciones.
"""


class VitrinaError(Exception):
    """Base de los errores del motor."""


class ScopeViolationError(VitrinaError):
    """El recurso pertenece a otra agencia que la del caller."""

    def __init__(self, resource: str, resource_id: str, agency_id: str):
        self.resource = resource
        self.resource_id = resource_id
        self.agency_id = agency_id
        super().__init__(
            f"{resource} {resource_id} no pertenece a la agencia {agency_id}"
        )


class LeadNotFoundError(VitrinaError):
    """El lead no existe."""


class BuyerProfileMissingError(VitrinaError):
    """El lead todavía no tiene perfil de comprador extraído."""


class InvalidSearchRequestError(VitrinaError):
    """Request de búsqueda mal formado."""


class InvalidEmbeddingError(ValueError):
    """Vector con dimensión incorrecta o valores no finitos."""
