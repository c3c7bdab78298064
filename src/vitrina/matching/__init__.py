"""
Motor de matching.

Relaja filtros en cascada y mezcla score estructurado y semántico
con pesos dinámicos para rankear propiedades para cada lead.
"""

from vitrina.matching.engine import LeadMatcher, similarity_from_distance
from vitrina.matching.relaxation import RELAXATION_PIPELINE
from vitrina.matching.structured import score_structured
from vitrina.matching.weights import compute_dynamic_weights

__all__ = [
    "LeadMatcher",
    "RELAXATION_PIPELINE",
    "compute_dynamic_weights",
    "score_structured",
    "similarity_from_distance",
]
