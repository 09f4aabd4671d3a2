from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date

import pytest
from fastapi.testclient import TestClient
from jose import jwt
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
def clear_settings() -> Generator[None, None, None]:
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


@pytest.fixture()
def staff_headers() -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode(
        {"sub": "staff-7", "email": "frontdesk@gym.test", "roles": ["frontdesk"]},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def service_id(db_session: Session) -> uuid.UUID:
    member = Member(member_code="GYM-0042", full_name="Dana Kowalski")
    db_session.add(member)
    db_session.flush()
    service = MemberService(
        member_id=member.id,
        zone="Gym",
        subscription_plan="Monthly",
        start_date=date(2025, 1, 1),
        expiry_date=date(2025, 2, 1),
    )
    db_session.add(service)
    db_session.commit()
    return service.id


def _place_freeze(client: TestClient, service_id: uuid.UUID, headers: dict[str, str] | None = None) -> dict:
    response = client.post(
        "/api/membership/holds",
        json={
            "service_id": str(service_id),
            "action_type": "freeze",
            "hold_start": "2025-01-01",
            "hold_end": "2025-01-11",
            "reason": "Travel",
        },
        headers=headers or {},
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_place_freeze_records_acting_staff_user(
    client: TestClient,
    service_id: uuid.UUID,
    staff_headers: dict[str, str],
) -> None:
    hold = _place_freeze(client, service_id, staff_headers)

    assert hold["status"] == "active"
    assert hold["created_by"] == "frontdesk@gym.test"
    assert hold["duration_days"] == 10

    service = client.get(f"/api/membership/services/{service_id}")
    assert service.status_code == 200
    assert service.json()["hold_status"] == "frozen"
    assert service.json()["is_active"] is True


def test_anonymous_caller_is_recorded_as_anonymous(client: TestClient, service_id: uuid.UUID) -> None:
    hold = _place_freeze(client, service_id)
    assert hold["created_by"] == "anonymous"


def test_invalid_window_returns_error_envelope(client: TestClient, service_id: uuid.UUID) -> None:
    response = client.post(
        "/api/membership/holds",
        json={
            "service_id": str(service_id),
            "action_type": "freeze",
            "hold_start": "2025-01-11",
            "hold_end": "2025-01-01",
        },
        headers={"X-Correlation-Id": "hold-corr-1"},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "invalid_window"
    assert body["correlation_id"] == "hold-corr-1"
    assert response.headers.get("x-correlation-id") == "hold-corr-1"


def test_second_hold_conflicts(client: TestClient, service_id: uuid.UUID) -> None:
    _place_freeze(client, service_id)

    response = client.post(
        "/api/membership/holds",
        json={"service_id": str(service_id), "action_type": "suspend", "hold_start": "2025-01-02"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "already_on_hold"
    holds = client.get("/api/membership/holds", params={"service_id": str(service_id)})
    assert len(holds.json()) == 1


def test_unknown_service_is_404(client: TestClient) -> None:
    response = client.post(
        "/api/membership/holds",
        json={"service_id": str(uuid.uuid4()), "action_type": "suspend", "hold_start": "2025-01-02"},
    )
    assert response.status_code == 404
    assert response.json()["code"] == "service_not_found"


def test_preview_shows_projected_expiry(client: TestClient, service_id: uuid.UUID) -> None:
    response = client.post(
        "/api/membership/holds/preview",
        json={
            "service_id": str(service_id),
            "action_type": "freeze",
            "hold_start": "2025-01-01",
            "hold_end": "2025-01-11",
        },
    )

    assert response.status_code == 200
    assert response.json()["duration_days"] == 10
    assert response.json()["projected_expiry"] == "2025-02-11"


def test_resume_sweep_endpoint_resumes_due_freezes(client: TestClient, service_id: uuid.UUID) -> None:
    hold = _place_freeze(client, service_id)

    response = client.post("/api/membership/holds/resume-sweep", params={"as_of": "2025-01-11"})

    assert response.status_code == 200
    report = response.json()
    assert report["as_of"] == "2025-01-11"
    assert report["succeeded"] == 1
    assert report["results"][0]["hold_id"] == hold["id"]
    assert report["results"][0]["new_expiry"] == "2025-02-11"

    fetched = client.get(f"/api/membership/holds/{hold['id']}")
    assert fetched.json()["status"] == "completed"
    assert fetched.json()["resumed_by"] == "system"
    assert client.get(f"/api/membership/services/{service_id}").json()["expiry_date"] == "2025-02-11"

    again = client.post("/api/membership/holds/resume-sweep", params={"as_of": "2025-01-11"})
    assert again.json()["total"] == 0


def test_release_then_release_again_conflicts(client: TestClient, service_id: uuid.UUID, staff_headers: dict[str, str]) -> None:
    hold = _place_freeze(client, service_id)

    released = client.post(
        f"/api/membership/holds/{hold['id']}/release",
        json={"release_date": "2025-01-04", "notes": "Back early"},
        headers=staff_headers,
    )
    assert released.status_code == 200
    assert released.json()["status"] == "completed"
    assert released.json()["resumed_by"] == "frontdesk@gym.test"
    assert client.get(f"/api/membership/services/{service_id}").json()["expiry_date"] == "2025-02-04"

    again = client.post(f"/api/membership/holds/{hold['id']}/release", json={})
    assert again.status_code == 409
    assert again.json()["code"] == "hold_not_active"


def test_unknown_hold_is_404(client: TestClient) -> None:
    response = client.get(f"/api/membership/holds/{uuid.uuid4()}")
    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "hold_not_found"
    assert body["correlation_id"] == response.headers.get("x-correlation-id")


def test_audit_trail_lists_placement_and_resume(client: TestClient, service_id: uuid.UUID) -> None:
    hold = _place_freeze(client, service_id, {"X-Correlation-Id": "place-corr-1"})
    client.post("/api/membership/holds/resume-sweep", params={"as_of": "2025-01-20"})

    placement = client.get("/api/membership/audit", params={"table_name": "member_service", "record_id": str(service_id)})
    assert placement.status_code == 200
    [entry] = placement.json()
    assert entry["action_type"] == "MEMBERSHIP_FREEZE"
    assert entry["correlation_id"] == "place-corr-1"
    assert entry["description"].startswith("Froze membership for Dana Kowalski (GYM-0042) until 11/01/2025")

    resume = client.get("/api/membership/audit", params={"record_id": hold["id"], "action_type": "AUTO_RESUME"})
    assert len(resume.json()) == 1
    assert resume.json()[0]["action_by"] == "system"


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
