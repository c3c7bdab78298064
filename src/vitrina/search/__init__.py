"""
Búsqueda pública: ranking híbrido y browse.
"""

from vitrina.search.planner import (
    HybridQueryPlanner,
    blend_score,
    boost_scalar,
    clamp_page,
    recommended_sort_key,
    semantic_similarity,
)

__all__ = [
    "HybridQueryPlanner",
    "blend_score",
    "boost_scalar",
    "clamp_page",
    "recommended_sort_key",
    "semantic_similarity",
]
