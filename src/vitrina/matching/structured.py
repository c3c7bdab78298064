"""
Score estructurado: puntos aditivos por dimensión satisfecha.

Solo cuentan las dimensiones que el perfil especificó; si el listing no
tiene el dato, la dimensión cuenta como no satisfecha.
"""

from typing import Optional

from vitrina.config import MatchTuning
from vitrina.models import BuyerProfile, ListingDocument, StructuredScore


def _within(value: Optional[int], low: Optional[int], high: Optional[int]) -> bool:
    if value is None:
        return False
    if low is not None and value < low:
        return False
    if high is not None and value > high:
        return False
    return True


def score_structured(
    profile: BuyerProfile,
    document: ListingDocument,
    tuning: Optional[MatchTuning] = None,
) -> StructuredScore:
    """
    Puntúa un candidato contra el perfil.

    Returns:
        StructuredScore con puntos, máximo posible y dimensiones
        matched/missing (en el orden en que se evalúan)
    """
    tuning = tuning or MatchTuning()
    score = StructuredScore()

    def check(name: str, points: float, satisfied: bool) -> None:
        score.max_points += points
        if satisfied:
            score.points += points
            score.matched.append(name)
        else:
            score.missing.append(name)

    if profile.has_budget:
        check(
            "budget",
            tuning.budget_points,
            _within(document.price, profile.budget_min, profile.budget_max),
        )

    if profile.bedrooms_min is not None:
        check(
            "bedrooms",
            tuning.bedrooms_points,
            _within(document.bedrooms, profile.bedrooms_min, None),
        )

    if profile.bathrooms_min is not None:
        check(
            "bathrooms",
            tuning.bathrooms_points,
            _within(document.bathrooms, profile.bathrooms_min, None),
        )

    if profile.has_size:
        check(
            "size_sqm",
            tuning.size_points,
            _within(document.size_sqm, profile.size_min_sqm, profile.size_max_sqm),
        )

    if profile.communes:
        wanted = {c.lower() for c in profile.communes}
        check("commune", tuning.commune_points, (document.commune or "").lower() in wanted)

    for amenity in profile.amenities:
        check(amenity.value, tuning.amenity_points, amenity in document.amenities)

    return score
