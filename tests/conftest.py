"""Pytest fixtures for SolarpunkList tests.

Provides an in-memory SQLite database shared by repositories and the API
test client, plus sample model output used across the pipeline tests.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import solarpunklist.db.models  # noqa: F401  registers tables on Base.metadata
from solarpunklist.db.base import Base
from solarpunklist.db.deps import get_db
from solarpunklist.main import app
from solarpunklist.models import CommunityCreate
from solarpunklist.repositories.community_repository_sqlalchemy import CommunityRepositorySQLAlchemy
from solarpunklist.repositories.subscriber_repository_sqlalchemy import (
    SubscriberRepositorySQLAlchemy,
    VisitRepositorySQLAlchemy,
)
from solarpunklist.services.identity import slugify
from solarpunklist.services.search_service import SearchDocument, SearchService


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def community_repo(db_session):
    return CommunityRepositorySQLAlchemy(db_session)


@pytest.fixture
def subscriber_repo(db_session):
    return SubscriberRepositorySQLAlchemy(db_session)


@pytest.fixture
def visit_repo(db_session):
    return VisitRepositorySQLAlchemy(db_session)


@pytest.fixture
def client(engine):
    """Create a test client whose requests use the in-memory database."""
    testing_session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        db = testing_session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fake_search():
    """SearchService stand-in with async methods that return nothing by default."""
    search = MagicMock(spec=SearchService)
    search.search = AsyncMock(return_value=[])
    search.get_contents = AsyncMock(return_value=None)
    return search


@pytest.fixture
def research_documents():
    return [
        SearchDocument(
            title="Sieben Linden Ecovillage",
            url="https://siebenlinden.org/en/",
            text="Sieben Linden is an ecovillage in Saxony-Anhalt with about 150 residents, "
                 "straw-bale houses, a solar cooperative and sociocratic governance.",
        ),
        SearchDocument(
            title="Visiting Sieben Linden",
            url="https://example.org/travel/sieben-linden",
            text="Guests can join seminar weeks and a volunteer programme in the forest garden.",
        ),
    ]


@pytest.fixture
def sample_profile_data():
    """A well-formed profile document as the model would return it."""
    return {
        "name": "Sieben Linden",
        "tagline": "A car-free ecovillage building low-impact culture in eastern Germany.",
        "overview": "Sieben Linden is a rural ecovillage founded in 1997.",
        "stage": "established",
        "founded_year": 1997,
        "population": 150,
        "location_country": "Germany",
        "location_region": "Saxony-Anhalt",
        "location_lat": 52.7,
        "location_lng": 11.1,
        "website_url": "https://siebenlinden.org",
        "scores": {
            "energy": {"score": 8, "reasoning": "Solar cooperative"},
            "land": {"score": 9, "reasoning": "Forest garden"},
            "tech": {"score": 5, "reasoning": "Appropriate tech"},
            "governance": {"score": 8, "reasoning": "Sociocracy"},
            "community": {"score": 9, "reasoning": "Seminars and shared meals"},
            "circularity": {"score": 7, "reasoning": "Composting toilets"},
        },
        "tech_stack": {
            "energy": ["solar PV", "wood gasification"],
            "water": ["constructed wetland"],
            "food": ["forest garden"],
            "shelter": ["straw bale"],
            "digital": [],
            "governance": ["sociocracy"],
        },
        "land_description": "Former farmland and pine forest.",
        "community_life": "Shared meals and regular seminars.",
        "how_to_join": "Start with a guest week.",
        "tags": ["ecovillage", "straw bale", "sociocracy"],
        "ai_confidence": 0.8,
        "is_forming_disclaimer": False,
    }


@pytest.fixture
def sample_profile_json(sample_profile_data):
    return json.dumps(sample_profile_data)


@pytest.fixture
def make_community(community_repo):
    """Factory that persists a minimal community."""

    def _make(name: str, slug: str | None = None, **fields):
        data = {"is_published": True, "solarpunk_score": 50.0}
        data.update(fields)
        return community_repo.create(CommunityCreate(name=name, slug=slug or slugify(name), **data))

    return _make
