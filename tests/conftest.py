"""Shared pytest fixtures."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from tests.fakes import (
    FakeBoostRepository,
    FakeEmbedder,
    FakeInteractionRepository,
    FakeLeadMatchRepository,
    FakeLeadRepository,
    FakeListingRepository,
    FakePopularityRepository,
    FakeSearchIndexRepository,
)
from vitrina.config import Settings, get_settings
from vitrina.models import BuyerProfile, Listing, ListingDocument, VisibilityStatus

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
AGENCY_ID = "agency-1"


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent the local .env file from leaking into test Settings instances."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )
    get_settings.cache_clear()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_listing() -> Callable[..., Listing]:
    def _make(listing_id: str = "listing-1", **overrides: Any) -> Listing:
        data: dict[str, Any] = {
            "id": listing_id,
            "agency_id": AGENCY_ID,
            "agency_name": "Agence Centrale",
            "is_published": True,
            "status": "ACTIVE",
            "title": "Bright apartment with balcony",
            "description": "Renovated flat close to the tram.",
            "commune": "Luxembourg",
            "kind": "SALE",
            "property_type": "APARTMENT",
            "price": 650000,
            "size_sqm": 80,
            "bedrooms": 2,
            "bathrooms": 1,
            "has_balcony": True,
            "created_at": NOW - timedelta(days=30),
            "updated_at": NOW - timedelta(days=1),
        }
        data.update(overrides)
        return Listing(**data)

    return _make


@pytest.fixture
def make_document() -> Callable[..., ListingDocument]:
    def _make(listing_id: str = "listing-1", **overrides: Any) -> ListingDocument:
        data: dict[str, Any] = {
            "listing_id": listing_id,
            "agency_id": AGENCY_ID,
            "status": VisibilityStatus.PUBLISHED,
            "title": f"Listing {listing_id}",
            "search_text": f"TITLE: Listing {listing_id}",
            "price": 650000,
            "bedrooms": 2,
            "bathrooms": 1,
            "size_sqm": 80,
            "kind": "SALE",
            "property_type": "APARTMENT",
            "commune": "Luxembourg",
            "updated_at": NOW - timedelta(days=1),
        }
        data.update(overrides)
        return ListingDocument(**data)

    return _make


@pytest.fixture
def make_profile() -> Callable[..., BuyerProfile]:
    def _make(**overrides: Any) -> BuyerProfile:
        data: dict[str, Any] = {"id": "profile-1"}
        data.update(overrides)
        return BuyerProfile(**data)

    return _make


@pytest.fixture
def listing_repo() -> FakeListingRepository:
    return FakeListingRepository()


@pytest.fixture
def index_repo() -> FakeSearchIndexRepository:
    return FakeSearchIndexRepository()


@pytest.fixture
def popularity_repo() -> FakePopularityRepository:
    return FakePopularityRepository()


@pytest.fixture
def interaction_repo() -> FakeInteractionRepository:
    return FakeInteractionRepository()


@pytest.fixture
def boost_repo() -> FakeBoostRepository:
    return FakeBoostRepository()


@pytest.fixture
def lead_repo() -> FakeLeadRepository:
    return FakeLeadRepository()


@pytest.fixture
def match_repo() -> FakeLeadMatchRepository:
    return FakeLeadMatchRepository()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()
