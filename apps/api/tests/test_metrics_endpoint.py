from __future__ import annotations

from collections.abc import Generator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.business.membership.models import Member, MemberService
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _seed_service(session: Session) -> str:
    member = Member(member_code="GYM-0900", full_name="Metrics Member")
    session.add(member)
    session.flush()
    service = MemberService(
        member_id=member.id,
        zone="Gym",
        subscription_plan="Monthly",
        start_date=date(2025, 1, 1),
        expiry_date=date(2025, 2, 1),
    )
    session.add(service)
    session.commit()
    return str(service.id)


def test_metrics_endpoint_exposes_http_hold_and_sweep_metrics(client: TestClient, db_session: Session) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    service_id = _seed_service(db_session)
    placed = client.post(
        "/api/membership/holds",
        json={"service_id": service_id, "action_type": "freeze", "hold_start": "2025-01-01", "hold_end": "2025-01-11"},
    )
    assert placed.status_code == 201

    rejected = client.post(
        "/api/membership/holds",
        json={"service_id": service_id, "action_type": "suspend", "hold_start": "2025-01-03"},
    )
    assert rejected.status_code == 409

    sweep = client.post("/api/membership/holds/resume-sweep", params={"as_of": "2025-01-11"})
    assert sweep.status_code == 200

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "membership_holds_placed_total" in body
    assert "membership_hold_rejections_total" in body
    assert "membership_sweep_runs_total" in body
    assert "membership_sweep_records_total" in body
    assert "membership_sweep_duration_seconds" in body

    assert 'path="/health"' in body
    assert 'path="/api/membership/holds/resume-sweep"' in body
    assert 'action_type="freeze"' in body
    assert 'code="already_on_hold"' in body
    assert 'status="resumed"' in body


def test_metrics_endpoint_hidden_when_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")
    assert response.status_code == 404
