"""Tests for the popularity job against in-memory repositories."""

from datetime import timedelta

import pytest

from vitrina.config import PopularityTuning
from vitrina.models import PopularityBadge, PopularityRecord
from vitrina.popularity import PopularityScorer


@pytest.fixture
def scorer(listing_repo, popularity_repo, interaction_repo) -> PopularityScorer:
    return PopularityScorer(
        listing_repo=listing_repo,
        popularity_repo=popularity_repo,
        interaction_repo=interaction_repo,
        tuning=PopularityTuning(),
    )


class TestRun:
    async def test_full_recompute(
        self, scorer, listing_repo, popularity_repo, interaction_repo, make_listing, now
    ) -> None:
        for listing_id in ("a", "b", "c"):
            listing_repo.add(make_listing(listing_id))
        for user in range(6):
            interaction_repo.save(f"u{user}", "a", now - timedelta(hours=5))
        interaction_repo.view("b", now - timedelta(days=1), times=30)

        result = await scorer.run(now=now)

        assert result.eligible == 3
        assert result.updated == 3
        assert result.segments == 1
        assert popularity_repo.records["a"].badge == PopularityBadge.MOST_SAVED
        assert popularity_repo.records["a"].saves_7d == 6
        assert popularity_repo.records["b"].views_7d == 30
        assert popularity_repo.records["c"].badge == PopularityBadge.NONE
        assert popularity_repo.records["a"].segment_key == "sale|apartment|luxembourg"

    async def test_ineligible_listing_badge_cleared(
        self, scorer, listing_repo, popularity_repo, make_listing, now
    ) -> None:
        listing_repo.add(make_listing("live"))
        listing_repo.add(make_listing("sold", status="SOLD"))
        popularity_repo.upsert_many(
            [
                PopularityRecord(
                    listing_id="sold",
                    saves_7d=10,
                    decayed_score_7d=40.0,
                    badge=PopularityBadge.MOST_SAVED,
                )
            ]
        )

        result = await scorer.run(now=now)

        assert result.cleared == 1
        assert result.eligible == 1
        assert popularity_repo.records["sold"].badge == PopularityBadge.NONE
        assert popularity_repo.records["sold"].decayed_score_7d == 0.0

    async def test_rerun_is_idempotent(
        self, scorer, listing_repo, popularity_repo, interaction_repo, make_listing, now
    ) -> None:
        for listing_id in ("a", "b"):
            listing_repo.add(make_listing(listing_id))
        interaction_repo.save("u1", "a", now - timedelta(days=2))
        interaction_repo.view("a", now - timedelta(days=2), times=25)

        await scorer.run(now=now)
        first = dict(popularity_repo.records)
        await scorer.run(now=now)

        assert popularity_repo.records == first

    async def test_global_fallback_reported(
        self, scorer, listing_repo, popularity_repo, interaction_repo, make_listing, now
    ) -> None:
        listing_repo.add(make_listing("a", commune="Mamer"))
        listing_repo.add(make_listing("b", commune="Strassen"))
        interaction_repo.view("b", now - timedelta(hours=1), times=2)

        result = await scorer.run(now=now)

        assert result.global_fallback_used is True
        assert result.trending == 1
        assert popularity_repo.records["b"].badge == PopularityBadge.TRENDING
        assert popularity_repo.records["a"].badge == PopularityBadge.NONE

    async def test_empty_catalog(self, scorer, popularity_repo, now) -> None:
        result = await scorer.run(now=now)
        assert result.eligible == 0
        assert popularity_repo.records == {}
