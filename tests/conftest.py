"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests, and an
orchestrator pinned to a fixed clock (mid-January, no seasonal boost) so
reward amounts are exact.
"""
import base64
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db
from app.dependencies import get_orchestrator
from app.main import app
from app.services.collaborators import InMemoryUserProfileStore, SimulatedRewardIssuer
from app.services.detectors import HeuristicPhotoDetector
from app.services.orchestrator import ActivityOrchestrator
from app.services.submission import ActivitySubmission, SubmissionMetadata

SQLITE_URL = "sqlite:///./test_ecohunt.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
TOKEN_CONTRACT = "0xd32F38d4bda39069066D3c9DeCF0d86D351DAD9d"

# Large enough for the heuristic detector to treat as a real photo
GOOD_PHOTO = b"\xff\xd8\xff\xe0" + bytes(range(256)) * 8
TINY_PHOTO = b"\xff\xd8\xff\xe0" + b"\x00" * 60


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def build_orchestrator(**overrides) -> ActivityOrchestrator:
    kwargs = dict(
        detector=HeuristicPhotoDetector(),
        issuer=SimulatedRewardIssuer(TOKEN_CONTRACT),
        profile_store=InMemoryUserProfileStore(),
        clock=lambda: NOW,
    )
    kwargs.update(overrides)
    return ActivityOrchestrator(**kwargs)


def good_metadata(**overrides) -> SubmissionMetadata:
    fields = dict(
        timestamp=NOW - timedelta(hours=1),
        gps_coordinates=(40.4168, -3.7038),
        device_info="Pixel 8",
    )
    fields.update(overrides)
    return SubmissionMetadata(**fields)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def orchestrator():
    return build_orchestrator()


@pytest.fixture()
def make_submission():
    """Factory for a well-formed tree-planting submission; override any field."""
    def _make(**overrides) -> ActivitySubmission:
        fields = dict(
            activity_type="tree-planting",
            photo_data=GOOD_PHOTO,
            user_wallet=WALLET,
            metadata=good_metadata(),
        )
        fields.update(overrides)
        return ActivitySubmission(**fields)
    return _make


@pytest.fixture()
def submission_payload():
    """Factory for the JSON body of POST /activities."""
    def _make(**overrides) -> dict:
        body = {
            "activity_type": "tree-planting",
            "photo_data": base64.b64encode(GOOD_PHOTO).decode(),
            "user_wallet": WALLET,
            "metadata": {
                "timestamp": (NOW - timedelta(hours=1)).isoformat(),
                "gps_coordinates": [40.4168, -3.7038],
                "device_info": "Pixel 8",
            },
        }
        body.update(overrides)
        return body
    return _make


@pytest.fixture()
def client(db, orchestrator):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
