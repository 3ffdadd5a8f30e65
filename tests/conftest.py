"""
Test configuration for Poligraph
"""

import os

# Must be set before poligraph.models.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import date
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from poligraph import config
from poligraph.main import app
from poligraph.models.database import Base, get_db
from poligraph.models.models import Affair, AffairSource, Mandate, Politician, PublicationStatus
from poligraph.services.name_matching import generate_slug

ADMIN_PASSWORD = "test-admin-password"


@pytest.fixture
def test_db():
    """Create test database"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(test_db, monkeypatch):
    """API client bound to the test database"""
    monkeypatch.setattr(config, "ADMIN_PASSWORD", ADMIN_PASSWORD)

    def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_PASSWORD}"}


@pytest.fixture
def make_politician(test_db):
    def _make(first_name, last_name, birth_date=None, public_id=None, departments=(),
              publication_status=PublicationStatus.PUBLISHED.value, mandate_type="DEPUTE"):
        full_name = f"{first_name} {last_name}"
        politician = Politician(
            slug=generate_slug(f"{full_name} {public_id or ''}") or generate_slug(full_name),
            public_id=public_id,
            first_name=first_name,
            last_name=last_name,
            full_name=full_name,
            birth_date=birth_date,
            publication_status=publication_status,
        )
        for code in departments:
            politician.mandates.append(
                Mandate(
                    type=mandate_type,
                    title=f"{mandate_type} ({code})",
                    constituency=f"Circonscription {code}",
                    department_code=code,
                    start_date=date(2022, 6, 22),
                    is_current=True,
                )
            )
        test_db.add(politician)
        test_db.commit()
        return politician

    return _make


@pytest.fixture
def make_affair(test_db):
    counter = {"n": 0}

    def _make(politician, title, category="CORRUPTION", status="ENQUETE_PRELIMINAIRE", source_urls=(),
              publication_status=PublicationStatus.PUBLISHED.value, **fields):
        counter["n"] += 1
        affair = Affair(
            politician_id=politician.id,
            title=title,
            slug=f"{generate_slug(title)}-{counter['n']}",
            category=category,
            status=status,
            publication_status=publication_status,
            **fields,
        )
        for url in source_urls:
            affair.sources.append(AffairSource(url=url, title=title, publisher="Le Monde"))
        test_db.add(affair)
        test_db.commit()
        return affair

    return _make
