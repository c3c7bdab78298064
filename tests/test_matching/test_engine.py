"""Tests for the lead matcher."""

import pytest

from tests.conftest import AGENCY_ID
from tests.fakes import unit_vector
from vitrina.config import MatchTuning
from vitrina.errors import BuyerProfileMissingError, LeadNotFoundError, ScopeViolationError
from vitrina.matching import LeadMatcher, similarity_from_distance
from vitrina.models import Amenity, Lead, MatchOutcome, RelaxationLevel, VisibilityStatus

LEAD_ID = "lead-1"


@pytest.fixture
def matcher(lead_repo, index_repo, match_repo) -> LeadMatcher:
    return LeadMatcher(
        lead_repo=lead_repo,
        index_repo=index_repo,
        match_repo=match_repo,
        tuning=MatchTuning(),
        query_timeout=1.0,
    )


@pytest.fixture
def add_lead(lead_repo):
    def _add(profile, agency_id=AGENCY_ID, lead_id=LEAD_ID) -> Lead:
        lead = Lead(id=lead_id, agency_id=agency_id, buyer_profile=profile)
        lead_repo.leads[lead_id] = lead
        return lead

    return _add


class TestSimilarityFromDistance:
    def test_clamped_to_unit_interval(self) -> None:
        assert similarity_from_distance(0.0) == 1.0
        assert similarity_from_distance(0.25) == 0.75
        assert similarity_from_distance(1.5) == 0.0
        assert similarity_from_distance(-0.1) == 1.0


class TestScope:
    async def test_lead_from_other_agency_is_rejected(
        self, matcher, add_lead, index_repo, match_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(budget_max=700000), agency_id="agency-2")

        with pytest.raises(ScopeViolationError):
            await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert index_repo.candidate_calls == []
        assert match_repo.replace_calls == 0

    async def test_missing_lead(self, matcher) -> None:
        with pytest.raises(LeadNotFoundError):
            await matcher.match_lead("ghost", AGENCY_ID)

    async def test_lead_without_profile(self, matcher, add_lead) -> None:
        add_lead(None)
        with pytest.raises(BuyerProfileMissingError):
            await matcher.match_lead(LEAD_ID, AGENCY_ID)

    async def test_other_agency_listings_never_match(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("mine"))
        index_repo.add(make_document("theirs", agency_id="agency-2"))
        add_lead(make_profile(budget_max=700000))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert [m.listing_id for m in result.matches] == ["mine"]


class TestRelaxation:
    async def test_strict_hit_stops_cascade(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(budget_max=700000, communes=["Luxembourg"]))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.outcome == MatchOutcome.MATCHED
        assert result.relaxation_level == RelaxationLevel.STRICT
        assert len(index_repo.candidate_calls) == 1

    async def test_commune_preference_ignores_case(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a", commune="Luxembourg"))
        add_lead(make_profile(budget_max=700000, communes=["luxembourg"]))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.relaxation_level == RelaxationLevel.STRICT
        assert result.matches[0].reasons.matched[-1] == "commune"

    async def test_levels_tried_in_order(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(kind="RENT", budget_max=700000, communes=["Mamer"]))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.relaxation_level == RelaxationLevel.DROP_CATEGORY
        calls = index_repo.candidate_calls
        assert [c.communes for c in calls] == [["Mamer"], [], []]
        assert [c.kind for c in calls] == ["RENT", "RENT", None]

    async def test_budget_only_as_last_resort(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(budget_max=700000, bedrooms_min=5))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.relaxation_level == RelaxationLevel.BUDGET_ONLY
        assert len(index_repo.candidate_calls) == 4
        assert result.matches[0].reasons.missing == ["bedrooms"]

    async def test_unpublished_listings_are_not_candidates(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("draft", status=VisibilityStatus.DRAFT))
        add_lead(make_profile(budget_max=700000))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.outcome == MatchOutcome.NO_CANDIDATES

    async def test_no_candidates_clears_previous_matches(
        self, matcher, add_lead, index_repo, match_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(budget_max=700000))
        await matcher.match_lead(LEAD_ID, AGENCY_ID)
        assert len(match_repo.matches[LEAD_ID]) == 1

        index_repo.documents.clear()
        index_repo.candidate_calls.clear()
        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.outcome == MatchOutcome.NO_CANDIDATES
        assert result.matches == []
        assert len(index_repo.candidate_calls) == 4
        assert match_repo.matches[LEAD_ID] == []


class TestScoring:
    async def test_structured_only_without_profile_embedding(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(
            make_document("a", bedrooms=3, amenities=[Amenity.BALCONY], embedding=unit_vector(0))
        )
        index_repo.add(make_document("b", bedrooms=3, amenities=[], embedding=unit_vector(0)))
        add_lead(make_profile(budget_max=700000, bedrooms_min=2, amenities=[Amenity.BALCONY]))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.semantic_used is False
        assert (result.weights.structured, result.weights.semantic) == (1.0, 0.0)
        assert [m.listing_id for m in result.matches] == ["a", "b"]
        assert [m.score for m in result.matches] == [100.0, pytest.approx(100 * 35 / 38)]
        assert all(m.semantic_score == 0.0 for m in result.matches)

    async def test_semantic_breaks_structured_tie(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a", embedding=unit_vector(1)))
        index_repo.add(make_document("b", embedding=unit_vector(0)))
        add_lead(make_profile(budget_max=700000, embedding=unit_vector(0)))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.semantic_used is True
        assert result.weights.reason == "strict+sparse_profile+small_pool"
        assert result.weights.structured == pytest.approx(0.65)
        top, second = result.matches
        assert top.listing_id == "b"
        assert top.semantic_score == pytest.approx(100.0)
        assert second.semantic_score == pytest.approx(0.0)
        assert top.score == pytest.approx(100.0)
        assert second.score == pytest.approx(65.0)

    async def test_distance_failure_degrades_to_structured(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a", embedding=unit_vector(0)))
        index_repo.broken.add("embedding_distances")
        add_lead(make_profile(budget_max=700000, embedding=unit_vector(0)))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.outcome == MatchOutcome.MATCHED
        assert result.semantic_used is False
        assert result.weights.semantic == 0.0

    async def test_candidates_without_embeddings(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(budget_max=700000, embedding=unit_vector(0)))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.semantic_used is False

    async def test_equal_scores_ordered_by_listing_id(
        self, matcher, add_lead, index_repo, make_profile, make_document
    ) -> None:
        for listing_id in ("c", "a", "b"):
            index_repo.add(make_document(listing_id))
        add_lead(make_profile(budget_max=700000))

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert [m.listing_id for m in result.matches] == ["a", "b", "c"]


class TestWeightsScenario:
    """Same buyer, strict versus relaxed retrieval over a 100-listing pool."""

    @pytest.fixture
    def catalog(self, index_repo, make_document) -> None:
        for i in range(100):
            index_repo.add(
                make_document(f"l{i:03d}", price=800000, bedrooms=3, embedding=unit_vector(i))
            )

    async def test_strict_level_weights(
        self, matcher, add_lead, catalog, make_profile
    ) -> None:
        add_lead(
            make_profile(
                kind="SALE", budget_max=900000, bedrooms_min=2, embedding=unit_vector(0)
            )
        )

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.relaxation_level == RelaxationLevel.STRICT
        assert result.candidate_count == 100
        assert result.weights.structured == pytest.approx(0.70)
        assert result.weights.semantic == pytest.approx(0.30)

    async def test_relaxed_level_weights(
        self, matcher, add_lead, catalog, index_repo, make_profile
    ) -> None:
        add_lead(
            make_profile(
                kind="SALE",
                property_type="HOUSE",
                communes=["Mamer"],
                budget_max=900000,
                bedrooms_min=2,
                embedding=unit_vector(0),
            )
        )

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        assert result.relaxation_level == RelaxationLevel.DROP_CATEGORY
        assert len(index_repo.candidate_calls) == 3
        assert result.weights.structured == pytest.approx(0.45)
        assert result.weights.semantic == pytest.approx(0.55)
        assert result.matches[0].listing_id == "l000"


class TestTopK:
    @pytest.fixture
    def catalog(self, index_repo, make_document) -> None:
        for i in range(60):
            index_repo.add(make_document(f"l{i:02d}"))

    @pytest.mark.parametrize("top_k, expected", [(None, 10), (0, 1), (5, 5), (100, 50)])
    async def test_clamped(
        self, matcher, add_lead, catalog, make_profile, top_k, expected
    ) -> None:
        add_lead(make_profile(budget_max=700000))
        result = await matcher.match_lead(LEAD_ID, AGENCY_ID, top_k=top_k)
        assert len(result.matches) == expected

    async def test_rerun_replaces_matches(
        self, matcher, add_lead, catalog, match_repo, make_profile
    ) -> None:
        add_lead(make_profile(budget_max=700000))

        await matcher.match_lead(LEAD_ID, AGENCY_ID, top_k=20)
        await matcher.match_lead(LEAD_ID, AGENCY_ID, top_k=3)

        assert match_repo.replace_calls == 2
        assert [m.listing_id for m in match_repo.matches[LEAD_ID]] == ["l00", "l01", "l02"]


class TestReasons:
    async def test_payload(self, matcher, add_lead, index_repo, make_profile, make_document) -> None:
        index_repo.add(make_document("a"))
        add_lead(
            make_profile(budget_max=700000, communes=["Luxembourg"], amenities=[Amenity.GARDEN])
        )

        result = await matcher.match_lead(LEAD_ID, AGENCY_ID)

        reasons = result.matches[0].reasons
        assert reasons.matched == ["budget", "commune"]
        assert reasons.missing == ["garden"]
        assert reasons.relaxation_level == RelaxationLevel.STRICT
        assert reasons.candidate_count == 1
        assert reasons.semantic_used is False
        assert reasons.weight_reason == "semantic_unavailable"
        assert reasons.filter_used == {
            "agency_id": AGENCY_ID,
            "status": "PUBLISHED",
            "price_max": 700000,
            "communes": ["Luxembourg"],
        }

    async def test_match_rows_carry_scope(
        self, matcher, add_lead, index_repo, match_repo, make_profile, make_document
    ) -> None:
        index_repo.add(make_document("a"))
        add_lead(make_profile(budget_max=700000))

        await matcher.match_lead(LEAD_ID, AGENCY_ID)

        row = match_repo.matches[LEAD_ID][0]
        assert (row.lead_id, row.agency_id, row.listing_id) == (LEAD_ID, AGENCY_ID, "a")
        assert row.freshness_score is None
        assert row.to_db_dict()["reasons"]["relaxation_level"] == "strict"
