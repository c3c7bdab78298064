"""
Pesos dinámicos estructurado/semántico.

Función pura de (nivel de relajación, riqueza del perfil, tamaño del pool,
disponibilidad semántica). Más relajación, perfiles más pobres o pools
grandes empujan hacia lo semántico; pools chicos hacia lo estructurado.
"""

from typing import Optional

from vitrina.config import MatchTuning
from vitrina.models import MatchWeights, RelaxationLevel


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def base_structured_weight(level: RelaxationLevel, tuning: MatchTuning) -> float:
    if level == RelaxationLevel.STRICT:
        return tuning.strict_structured_weight
    if level == RelaxationLevel.DROP_LOCATION:
        return tuning.drop_location_structured_weight
    if level == RelaxationLevel.DROP_CATEGORY:
        return tuning.drop_category_structured_weight
    if level == RelaxationLevel.BUDGET_ONLY:
        return tuning.budget_only_structured_weight
    raise ValueError(f"Nivel de relajación desconocido: {level}")


def compute_dynamic_weights(
    relaxation_level: RelaxationLevel,
    profile_richness: int,
    candidate_pool_size: int,
    semantic_available: bool,
    tuning: Optional[MatchTuning] = None,
) -> MatchWeights:
    """
    Calcula los pesos de mezcla (siempre suman 1).

    Sin señal semántica el resultado es (1, 0).
    """
    if not semantic_available:
        return MatchWeights(structured=1.0, semantic=0.0, reason="semantic_unavailable")

    tuning = tuning or MatchTuning()
    structured = base_structured_weight(relaxation_level, tuning)
    semantic = 1.0 - structured
    reasons = [relaxation_level.value]

    if profile_richness <= tuning.sparse_profile_richness:
        structured -= tuning.sparse_profile_shift
        semantic += tuning.sparse_profile_shift
        reasons.append("sparse_profile")

    if candidate_pool_size >= tuning.large_pool_size:
        structured -= tuning.large_pool_shift
        semantic += tuning.large_pool_shift
        reasons.append("large_pool")
    elif candidate_pool_size <= tuning.small_pool_size:
        structured += tuning.small_pool_shift
        semantic -= tuning.small_pool_shift
        reasons.append("small_pool")

    structured = _clamp01(structured)
    semantic = _clamp01(semantic)
    total = structured + semantic
    if total <= 0:
        return MatchWeights(structured=1.0, semantic=0.0, reason="fallback")

    return MatchWeights(
        structured=structured / total,
        semantic=semantic / total,
        reason="+".join(reasons),
    )
