"""
Popularidad de listings y badges por segmento.
"""

from vitrina.popularity.scorer import (
    ListingActivity,
    PopularityScorer,
    aggregate_activity,
    assign_badges,
    assign_segment_badges,
    compute_score,
    decay_weight,
    segment_cutoff,
)

__all__ = [
    "ListingActivity",
    "PopularityScorer",
    "aggregate_activity",
    "assign_badges",
    "assign_segment_badges",
    "compute_score",
    "decay_weight",
    "segment_cutoff",
]
