"""
Motor de matching lead -> propiedades.

Implementa:
- Recuperación en cascada: filtro estricto y relajaciones en orden fijo
- Score estructurado: puntos por dimensión pedida y satisfecha
- Score semántico: distancia entre embeddings, solo sobre los candidatos
- Pesos dinámicos: función pura del nivel, la riqueza del perfil y el pool
"""

from typing import Optional

import structlog

from vitrina.concurrency import best_effort, run_blocking
from vitrina.config import MatchTuning, get_settings
from vitrina.database import LeadMatchRepository, LeadRepository, SearchIndexRepository
from vitrina.errors import BuyerProfileMissingError, LeadNotFoundError, ScopeViolationError
from vitrina.matching.relaxation import RELAXATION_PIPELINE
from vitrina.matching.structured import score_structured
from vitrina.matching.weights import compute_dynamic_weights
from vitrina.models import (
    BuyerProfile,
    CandidateFilter,
    LeadMatch,
    ListingDocument,
    MatchOutcome,
    MatchReasons,
    MatchRunResult,
    RelaxationLevel,
)

logger = structlog.get_logger()


def similarity_from_distance(distance: float) -> float:
    """Distancia coseno -> similitud en [0, 1]."""
    return max(0.0, min(1.0, 1.0 - distance))


class LeadMatcher:
    """
    Matching de un perfil de comprador contra el catálogo de su agencia.

    Flujo:
    1. Cargar el lead y verificar que pertenece a la agencia del caller
    2. Probar los niveles de relajación en orden hasta tener candidatos
    3. Puntuar estructurado + semántico y mezclar con pesos dinámicos
    4. Reemplazar los matches persistidos del lead por el nuevo top-K
    """

    def __init__(
        self,
        lead_repo: Optional[LeadRepository] = None,
        index_repo: Optional[SearchIndexRepository] = None,
        match_repo: Optional[LeadMatchRepository] = None,
        tuning: Optional[MatchTuning] = None,
        query_timeout: Optional[float] = None,
    ):
        settings = get_settings() if tuning is None or query_timeout is None else None
        self.lead_repo = lead_repo or LeadRepository()
        self.index_repo = index_repo or SearchIndexRepository()
        self.match_repo = match_repo or LeadMatchRepository()
        self.tuning = tuning or settings.matching
        self.query_timeout = query_timeout or settings.query_timeout_seconds

    async def match_lead(
        self, lead_id: str, agency_id: str, top_k: Optional[int] = None
    ) -> MatchRunResult:
        """
        Recalcula los matches de un lead.

        Args:
            lead_id: ID del lead
            agency_id: Agencia del caller (scope)
            top_k: Cantidad de matches a guardar (1-50)

        Raises:
            LeadNotFoundError: Si el lead no existe
            ScopeViolationError: Si el lead es de otra agencia
            BuyerProfileMissingError: Si el lead no tiene perfil
        """
        lead = await run_blocking(self.lead_repo.get_with_profile, lead_id)
        if lead is None:
            raise LeadNotFoundError(f"Lead {lead_id} no encontrado")

        if lead.agency_id != agency_id:
            logger.error(
                "Intento de matching fuera de scope",
                lead_id=lead_id,
                lead_agency=lead.agency_id,
                agency_id=agency_id,
            )
            raise ScopeViolationError("lead", lead_id, agency_id)

        if lead.buyer_profile is None:
            raise BuyerProfileMissingError(f"Lead {lead_id} no tiene perfil de comprador")

        return await self.match_profile(lead_id, agency_id, lead.buyer_profile, top_k)

    async def retrieve_candidates(
        self, profile: BuyerProfile, agency_id: str
    ) -> tuple[Optional[RelaxationLevel], Optional[CandidateFilter], list[ListingDocument]]:
        """
        Prueba los niveles en orden y corta en el primero con candidatos.

        Returns:
            (nivel, filtro usado, candidatos); nivel None si todos vinieron vacíos
        """
        for level, build_filter in RELAXATION_PIPELINE:
            candidate_filter = build_filter(profile, agency_id)
            candidates = await run_blocking(
                self.index_repo.find_candidates, candidate_filter, self.tuning.candidate_limit
            )
            logger.debug("Nivel de relajación probado", level=level.value, candidates=len(candidates))
            if candidates:
                return level, candidate_filter, candidates
        return None, None, []

    async def semantic_scores(
        self, profile: BuyerProfile, candidates: list[ListingDocument]
    ) -> dict[str, float]:
        """Similitud [0, 1] por listing; vacío si no hay señal semántica."""
        if profile.embedding is None:
            return {}
        distances = await best_effort(
            "match_embedding_distances",
            self.index_repo.embedding_distances,
            profile.embedding,
            [c.listing_id for c in candidates],
            timeout=self.query_timeout,
        )
        if not distances:
            return {}
        return {
            listing_id: similarity_from_distance(distance)
            for listing_id, distance in distances.items()
        }

    async def match_profile(
        self,
        lead_id: str,
        agency_id: str,
        profile: BuyerProfile,
        top_k: Optional[int] = None,
    ) -> MatchRunResult:
        """Matching de un perfil ya cargado (sin chequeo de scope)."""
        top_k = self.tuning.default_top_k if top_k is None else top_k
        top_k = max(1, min(self.tuning.max_top_k, top_k))

        level, candidate_filter, candidates = await self.retrieve_candidates(profile, agency_id)

        if level is None:
            # Los matches viejos ya no reflejan el catálogo: se vacían igual
            await run_blocking(self.match_repo.replace_for_lead, lead_id, [])
            logger.info("Sin candidatos en ningún nivel de relajación", lead_id=lead_id)
            return MatchRunResult(lead_id=lead_id, outcome=MatchOutcome.NO_CANDIDATES)

        similarities = await self.semantic_scores(profile, candidates)
        semantic_available = bool(similarities)

        weights = compute_dynamic_weights(
            relaxation_level=level,
            profile_richness=profile.richness,
            candidate_pool_size=len(candidates),
            semantic_available=semantic_available,
            tuning=self.tuning,
        )
        filter_used = candidate_filter.to_reason_dict()

        matches = []
        for document in candidates:
            structured = score_structured(profile, document, self.tuning)
            semantic_score = similarities.get(document.listing_id, 0.0) * 100.0
            score = structured.normalized * weights.structured + semantic_score * weights.semantic

            matches.append(
                LeadMatch(
                    lead_id=lead_id,
                    agency_id=agency_id,
                    listing_id=document.listing_id,
                    score=score,
                    structured_score=structured.normalized,
                    semantic_score=semantic_score,
                    reasons=MatchReasons(
                        matched=structured.matched,
                        missing=structured.missing,
                        relaxation_level=level,
                        semantic_used=semantic_available,
                        structured_weight=weights.structured,
                        semantic_weight=weights.semantic,
                        weight_reason=weights.reason,
                        candidate_count=len(candidates),
                        filter_used=filter_used,
                    ),
                )
            )

        matches.sort(key=lambda m: (-m.score, m.listing_id))
        top = matches[:top_k]

        await run_blocking(self.match_repo.replace_for_lead, lead_id, top)

        logger.info(
            "Matching completado",
            lead_id=lead_id,
            relaxation_level=level.value,
            candidates=len(candidates),
            matched=len(top),
            semantic_used=semantic_available,
            structured_weight=round(weights.structured, 3),
            semantic_weight=round(weights.semantic, 3),
        )

        return MatchRunResult(
            lead_id=lead_id,
            outcome=MatchOutcome.MATCHED,
            relaxation_level=level,
            weights=weights,
            candidate_count=len(candidates),
            semantic_used=semantic_available,
            matches=top,
        )
