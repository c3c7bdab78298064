"""
Relajación en cascada del filtro de candidatos.

Cada nivel es una función perfil -> filtro. El orden de la tupla es el orden
en que se prueban y no se reordena nunca: primero cae la ubicación, después
la categoría (kind/propertyType) y al final queda solo el presupuesto.
"""

from typing import Callable

from vitrina.models import BuyerProfile, CandidateFilter, RelaxationLevel

FilterBuilder = Callable[[BuyerProfile, str], CandidateFilter]


def build_strict(profile: BuyerProfile, agency_id: str) -> CandidateFilter:
    """Todas las preferencias estructuradas como restricciones duras."""
    return CandidateFilter(
        agency_id=agency_id,
        kind=profile.kind,
        property_type=profile.property_type,
        price_min=profile.budget_min,
        price_max=profile.budget_max,
        size_min=profile.size_min_sqm,
        size_max=profile.size_max_sqm,
        bedrooms_min=profile.bedrooms_min,
        bathrooms_min=profile.bathrooms_min,
        communes=list(profile.communes),
    )


def build_drop_location(profile: BuyerProfile, agency_id: str) -> CandidateFilter:
    return build_strict(profile, agency_id).model_copy(update={"communes": []})


def build_drop_category(profile: BuyerProfile, agency_id: str) -> CandidateFilter:
    return build_drop_location(profile, agency_id).model_copy(
        update={"kind": None, "property_type": None}
    )


def build_budget_only(profile: BuyerProfile, agency_id: str) -> CandidateFilter:
    return CandidateFilter(
        agency_id=agency_id,
        price_min=profile.budget_min,
        price_max=profile.budget_max,
    )


RELAXATION_PIPELINE: tuple[tuple[RelaxationLevel, FilterBuilder], ...] = (
    (RelaxationLevel.STRICT, build_strict),
    (RelaxationLevel.DROP_LOCATION, build_drop_location),
    (RelaxationLevel.DROP_CATEGORY, build_drop_category),
    (RelaxationLevel.BUDGET_ONLY, build_budget_only),
)
