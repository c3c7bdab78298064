"""Tests for repository query shapes against an in-memory PostgREST builder."""

import re
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Optional

from tests.conftest import NOW
from tests.fakes import unit_vector
from vitrina.database.repositories import (
    InteractionRepository,
    ListingRepository,
    PopularityRepository,
    SearchIndexRepository,
    fetch_all_rows,
)
from vitrina.models import CandidateFilter, SearchFilters


class FakeQuery:
    """
    Fluent query that records every call and serves pre-filtered rows.

    Filters are recorded, not applied. ``range`` slices the rows and
    ``execute`` caps the response at ``max_rows`` like PostgREST does.
    """

    def __init__(self, rows: list[dict], max_rows: int) -> None:
        self.rows = rows
        self.max_rows = max_rows
        self.calls: list[tuple[str, tuple]] = []
        self.window: Optional[tuple[int, int]] = None

    def __getattr__(self, name: str):
        def _record(*args: Any, **kwargs: Any) -> "FakeQuery":
            self.calls.append((name, args))
            return self

        return _record

    def range(self, start: int, end: int) -> "FakeQuery":
        self.window = (start, end)
        return self

    def execute(self) -> SimpleNamespace:
        if any(name == "update" for name, _ in self.calls):
            return SimpleNamespace(data=[])
        rows = self.rows
        if self.window is not None:
            rows = rows[self.window[0] : self.window[1] + 1]
        return SimpleNamespace(data=rows[: self.max_rows])

    def called(self, name: str) -> list[tuple]:
        return [args for call, args in self.calls if call == name]


class FakePostgrest:
    def __init__(self, tables: Optional[dict[str, list[dict]]] = None, max_rows: int = 1000) -> None:
        self.tables = tables or {}
        self.max_rows = max_rows
        self.queries: list[FakeQuery] = []
        self.rpc_calls: list[tuple[str, dict]] = []
        self.rpc_rows: list[dict] = []

    def table(self, name: str) -> FakeQuery:
        query = FakeQuery(self.tables.get(name, []), self.max_rows)
        query.table_name = name
        self.queries.append(query)
        return query

    def execute_rpc(self, function_name: str, params: Optional[dict] = None) -> list:
        self.rpc_calls.append((function_name, params or {}))
        return self.rpc_rows


def listing_rows(count: int) -> list[dict]:
    return [
        {
            "id": f"l{i:05d}",
            "created_at": NOW.isoformat(),
            "kind": "SALE",
            "property_type": "APARTMENT",
            "commune": "Luxembourg",
        }
        for i in range(count)
    ]


def event_rows(count: int, listing_id: str = "l1") -> list[dict]:
    return [{"listing_id": listing_id, "created_at": NOW.isoformat()} for _ in range(count)]


class TestFetchAllRows:
    def test_reads_until_short_page(self) -> None:
        client = FakePostgrest({"t": [{"n": i} for i in range(2500)]})

        rows = fetch_all_rows(lambda: client.table("t").select("n").order("n"))

        assert [row["n"] for row in rows] == list(range(2500))
        assert [q.window for q in client.queries] == [(0, 999), (1000, 1999), (2000, 2999)]

    def test_exact_multiple_stops_on_empty_page(self) -> None:
        client = FakePostgrest({"t": [{"n": i} for i in range(2000)]})

        rows = fetch_all_rows(lambda: client.table("t").select("n"))

        assert len(rows) == 2000
        assert len(client.queries) == 3

    def test_empty_table(self) -> None:
        client = FakePostgrest()
        assert fetch_all_rows(lambda: client.table("t").select("n")) == []
        assert len(client.queries) == 1


class TestLargeReads:
    def test_list_eligible_reads_past_row_cap(self) -> None:
        client = FakePostgrest({"listings": listing_rows(2500)})

        eligible = ListingRepository(client).list_eligible()

        assert len(eligible) == 2500
        assert eligible[-1].listing_id == "l02499"
        # pages need a total order to not overlap
        assert all(q.called("order") == [("id",)] for q in client.queries)

    def test_views_since_reads_every_event(self) -> None:
        client = FakePostgrest({"listing_view_events": event_rows(1500)})

        views = InteractionRepository(client).views_since(NOW)

        assert len(views) == 1500
        assert len(client.queries) == 2

    def test_count_saves_reads_every_event(self) -> None:
        client = FakePostgrest({"wishlist_items": event_rows(1200, "l7")})

        counts = InteractionRepository(client).count_saves_since(["l7"], NOW)

        assert counts == {"l7": 1200}


class TestClearIneligible:
    def test_only_stale_badges_are_reset(self) -> None:
        badged = [{"listing_id": f"l{i:05d}"} for i in range(1200)]
        client = FakePostgrest({"listing_popularity": badged})
        eligible = [f"l{i:05d}" for i in range(1100)]

        cleared = PopularityRepository(client).clear_ineligible(eligible)

        assert cleared == 100
        updates = [q for q in client.queries if q.called("update")]
        reset_ids = [i for q in updates for i in q.called("in_")[0][1]]
        assert reset_ids == [f"l{i:05d}" for i in range(1100, 1200)]

    def test_nothing_to_reset(self) -> None:
        client = FakePostgrest({"listing_popularity": [{"listing_id": "l1"}]})

        assert PopularityRepository(client).clear_ineligible(["l1"]) == 0
        assert not any(q.called("update") for q in client.queries)

    def test_large_reset_is_chunked(self) -> None:
        badged = [{"listing_id": f"l{i:05d}"} for i in range(450)]
        client = FakePostgrest({"listing_popularity": badged})

        assert PopularityRepository(client).clear_ineligible([]) == 450

        updates = [q for q in client.queries if q.called("update")]
        assert [len(q.called("in_")[0][1]) for q in updates] == [200, 200, 50]


class TestCandidateFilter:
    def test_communes_match_case_insensitively(self) -> None:
        client = FakePostgrest({"listing_search_index": []})
        candidate_filter = CandidateFilter(
            agency_id="agency-1", communes=["luxembourg", "Esch-sur-Alzette"]
        )

        SearchIndexRepository(client).find_candidates(candidate_filter, limit=300)

        query = client.queries[0]
        assert query.called("or_") == [
            ('commune.ilike."luxembourg",commune.ilike."Esch-sur-Alzette"',)
        ]
        assert all(args[0] != "commune" for args in query.called("in_"))

    def test_no_communes_no_location_filter(self) -> None:
        client = FakePostgrest({"listing_search_index": []})

        SearchIndexRepository(client).find_candidates(CandidateFilter(agency_id="agency-1"), 300)

        assert client.queries[0].called("or_") == []


MIGRATION = Path(__file__).parents[2] / "supabase" / "migrations" / "001_search_engine.sql"


class TestVectorRank:
    def test_requests_full_candidate_count(self) -> None:
        client = FakePostgrest()
        client.rpc_rows = [{"listing_id": "a", "distance": 0.25}]

        ranks = SearchIndexRepository(client).vector_rank(unit_vector(0), SearchFilters(), 300)

        assert ranks == {"a": 0.25}
        name, params = client.rpc_calls[0]
        assert name == "search_listing_vector"
        assert params["p_match_count"] == 300

    def test_function_widens_hnsw_search_to_match_count(self) -> None:
        sql = MIGRATION.read_text()
        body = re.search(
            r"function search_listing_vector\(.*?\$\$(.*?)\$\$;", sql, re.DOTALL
        ).group(1)

        assert "set_config('hnsw.ef_search'" in body
        assert "p_match_count" in body.split("return query")[0]
