"""
Scorer de popularidad.

Recalcula completo (sin estado incremental) el score de engagement de 7 días
de cada listing elegible y asigna badges comparativos por segmento
(kind|propertyType|commune).

Las funciones de cálculo son puras; ``PopularityScorer`` solo agrega I/O.
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

import structlog

from vitrina.concurrency import run_blocking
from vitrina.config import PopularityTuning, get_settings
from vitrina.database import InteractionRepository, ListingRepository, PopularityRepository
from vitrina.models import (
    EligibleListing,
    InteractionEvent,
    PopularityBadge,
    PopularityRecord,
    PopularityRunResult,
)

logger = structlog.get_logger()

_SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class ListingActivity:
    """Actividad agregada de un listing en la ventana."""

    listing_id: str
    segment_key: str
    saves: int = 0
    views: int = 0
    saves_weighted: float = 0.0
    views_weighted: float = 0.0
    score: float = 0.0

    @property
    def interactions(self) -> int:
        return self.saves + self.views


def age_in_days(then: datetime, now: datetime) -> float:
    """Edad en días (fraccional), nunca negativa."""
    return max(0.0, (now - then).total_seconds() / _SECONDS_PER_DAY)


def decay_weight(age_days: float, half_life_days: float) -> float:
    """Peso ``exp(-λ·edad)`` con λ = ln(2) / half_life."""
    decay_rate = math.log(2) / half_life_days
    return math.exp(-decay_rate * max(0.0, age_days))


def recency_bonus(listing_age_days: int, tuning: PopularityTuning) -> float:
    """Ventaja inicial para listings nuevos, decae linealmente en la ventana."""
    return max(0, tuning.window_days - listing_age_days) * tuning.recency_bonus_per_day


def compute_score(
    saves_weighted: float,
    views_weighted: float,
    listing_age_days: int,
    tuning: PopularityTuning,
) -> float:
    return (
        saves_weighted * tuning.save_multiplier
        + views_weighted * tuning.view_multiplier
        + recency_bonus(listing_age_days, tuning)
    )


def aggregate_activity(
    listings: Iterable[EligibleListing],
    saves: Iterable[InteractionEvent],
    views: Iterable[InteractionEvent],
    now: datetime,
    tuning: PopularityTuning,
) -> dict[str, ListingActivity]:
    """
    Cuenta eventos crudos y ponderados por listing y calcula el score.

    Los eventos de listings no elegibles o fuera de la ventana se ignoran.
    """
    listings = list(listings)
    window_start = now - timedelta(days=tuning.window_days)
    activity = {
        listing.listing_id: ListingActivity(listing.listing_id, listing.segment_key)
        for listing in listings
    }
    created = {listing.listing_id: listing.created_at for listing in listings}

    for event in saves:
        row = activity.get(event.listing_id)
        if row is None or event.created_at < window_start:
            continue
        row.saves += 1
        row.saves_weighted += decay_weight(age_in_days(event.created_at, now), tuning.half_life_days)

    for event in views:
        row = activity.get(event.listing_id)
        if row is None or event.created_at < window_start:
            continue
        row.views += 1
        row.views_weighted += decay_weight(age_in_days(event.created_at, now), tuning.half_life_days)

    for row in activity.values():
        listing_age = math.floor(age_in_days(created[row.listing_id], now))
        row.score = compute_score(row.saves_weighted, row.views_weighted, listing_age, tuning)

    return activity


def _by_score(rows: list[ListingActivity]) -> list[ListingActivity]:
    return sorted(rows, key=lambda r: (-r.score, r.listing_id))


def segment_cutoff(rows_by_score: list[ListingActivity], tuning: PopularityTuning) -> float:
    """Score mínimo para TRENDING: el del ~top 10% (top-1 en segmentos chicos)."""
    if not rows_by_score:
        return math.inf
    n = len(rows_by_score)
    if n <= tuning.small_segment_size:
        return rows_by_score[0].score
    index = min(math.floor(n * tuning.trending_percentile), n - 1)
    return rows_by_score[index].score


def meets_trending_minimum(row: ListingActivity, tuning: PopularityTuning) -> bool:
    return row.saves >= tuning.min_trending_saves or row.views >= tuning.min_trending_views


def assign_segment_badges(
    rows: list[ListingActivity], tuning: PopularityTuning
) -> dict[str, PopularityBadge]:
    """
    Badges de un segmento.

    Prioridad MOST_SAVED > MOST_VIEWED > TRENDING; cada badge "most" va a un
    único listing y solo si supera el umbral absoluto. En segmentos chicos
    solo el top scorer puede ser TRENDING.
    """
    if not rows:
        return {}

    rows_by_score = _by_score(rows)
    top_saved = min(rows, key=lambda r: (-r.saves, -r.score, r.listing_id))
    top_viewed = min(rows, key=lambda r: (-r.views, -r.score, r.listing_id))

    most_saved_id = top_saved.listing_id if top_saved.saves >= tuning.min_most_saved else None
    most_viewed_id = top_viewed.listing_id if top_viewed.views >= tuning.min_most_viewed else None

    cutoff = segment_cutoff(rows_by_score, tuning)
    small_segment = len(rows) <= tuning.small_segment_size

    badges: dict[str, PopularityBadge] = {}
    for position, row in enumerate(rows_by_score):
        if row.listing_id == most_saved_id:
            badges[row.listing_id] = PopularityBadge.MOST_SAVED
        elif row.listing_id == most_viewed_id:
            badges[row.listing_id] = PopularityBadge.MOST_VIEWED
        elif (
            row.score > 0
            and meets_trending_minimum(row, tuning)
            and row.score >= cutoff
            and (not small_segment or position == 0)
        ):
            badges[row.listing_id] = PopularityBadge.TRENDING
        else:
            badges[row.listing_id] = PopularityBadge.NONE
    return badges


def apply_global_fallback(
    activity: dict[str, ListingActivity],
    badges: dict[str, PopularityBadge],
    tuning: PopularityTuning,
) -> int:
    """
    Marca TRENDING a los mejores del catálogo completo (sin badge previo).

    Solo califican listings con score > 0 y actividad real en la ventana.
    Devuelve cuántos se marcaron.
    """
    tagged = 0
    for row in _by_score(list(activity.values())):
        if tagged >= tuning.global_trending_limit:
            break
        if badges.get(row.listing_id, PopularityBadge.NONE) != PopularityBadge.NONE:
            continue
        if row.score <= 0 or row.interactions < tuning.global_fallback_min_interactions:
            continue
        badges[row.listing_id] = PopularityBadge.TRENDING
        tagged += 1
    return tagged


def assign_badges(
    activity: dict[str, ListingActivity], tuning: PopularityTuning
) -> tuple[dict[str, PopularityBadge], bool]:
    """
    Badges de todo el catálogo.

    Returns:
        (badges por listing_id, si se usó el fallback global)
    """
    segments: dict[str, list[ListingActivity]] = {}
    for row in activity.values():
        segments.setdefault(row.segment_key, []).append(row)

    badges: dict[str, PopularityBadge] = {}
    for rows in segments.values():
        badges.update(assign_segment_badges(rows, tuning))

    fallback_used = not any(b == PopularityBadge.TRENDING for b in badges.values())
    if fallback_used:
        tagged = apply_global_fallback(activity, badges, tuning)
        logger.info("Sin TRENDING por segmento, se aplicó fallback global", tagged=tagged)

    return badges, fallback_used


class PopularityScorer:
    """
    Job de popularidad.

    Flujo:
    1. Listar listings elegibles (publicados + activos)
    2. Limpiar badge/score de los que dejaron de ser elegibles
    3. Traer guardados y vistas de la ventana (en paralelo)
    4. Puntuar, agrupar por segmento y asignar badges
    5. Upsert de todas las filas
    """

    def __init__(
        self,
        listing_repo: Optional[ListingRepository] = None,
        popularity_repo: Optional[PopularityRepository] = None,
        interaction_repo: Optional[InteractionRepository] = None,
        tuning: Optional[PopularityTuning] = None,
    ):
        self.listing_repo = listing_repo or ListingRepository()
        self.popularity_repo = popularity_repo or PopularityRepository()
        self.interaction_repo = interaction_repo or InteractionRepository()
        self.tuning = tuning or get_settings().popularity

    async def run(self, now: Optional[datetime] = None) -> PopularityRunResult:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=self.tuning.window_days)

        eligible = await run_blocking(self.listing_repo.list_eligible)
        cleared = await run_blocking(
            self.popularity_repo.clear_ineligible, [l.listing_id for l in eligible]
        )

        saves, views = await asyncio.gather(
            run_blocking(self.interaction_repo.saves_since, since),
            run_blocking(self.interaction_repo.views_since, since),
        )

        activity = aggregate_activity(eligible, saves, views, now, self.tuning)
        badges, fallback_used = assign_badges(activity, self.tuning)

        records = [
            PopularityRecord(
                listing_id=row.listing_id,
                saves_7d=row.saves,
                views_7d=row.views,
                decayed_score_7d=row.score,
                badge=badges.get(row.listing_id, PopularityBadge.NONE),
                segment_key=row.segment_key,
            )
            for row in activity.values()
        ]
        await run_blocking(self.popularity_repo.upsert_many, records)

        result = PopularityRunResult(
            eligible=len(eligible),
            updated=len(records),
            cleared=cleared,
            segments=len({row.segment_key for row in activity.values()}),
            trending=sum(1 for b in badges.values() if b == PopularityBadge.TRENDING),
            most_saved=sum(1 for b in badges.values() if b == PopularityBadge.MOST_SAVED),
            most_viewed=sum(1 for b in badges.values() if b == PopularityBadge.MOST_VIEWED),
            global_fallback_used=fallback_used,
        )
        logger.info("Popularidad recalculada", **result.model_dump())
        return result
