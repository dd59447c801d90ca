"""
HTTP-level tests against the FastAPI app
"""

import io

import pandas as pd
import pytest
from fastapi.testclient import TestClient

import main
from app.core.db import get_db
from app.models import Guest


@pytest.fixture
def client(monkeypatch, session_factory):
    """TestClient bound to the per-test database"""
    monkeypatch.setattr(main, "init_db", lambda: None)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    main.app.dependency_overrides[get_db] = override_get_db
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()


def login(client, username, password):
    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['data']['access_token']}"}


@pytest.fixture
def volunteer_headers(client, volunteer):
    return login(client, "yusuf", "volunteer-pass")


@pytest.fixture
def admin_headers(client, admin_user):
    return login(client, "admin", "admin-pass")


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_login_rejects_bad_password(client, volunteer):
    response = client.post("/auth/login", json={"username": "yusuf", "password": "wrong"})
    assert response.status_code == 401


def test_login_and_me(client, sample_event, volunteer):
    headers = login(client, "Yusuf", "volunteer-pass")

    response = client.get("/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["display_name"] == "Yusuf"

    client.post("/auth/logout", headers=headers)
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_qr_scan_page_flow(client, sample_guests):
    """First visit welcomes the guest, the second reports already checked in"""
    first = client.get("/checkin/abc123")
    assert first.status_code == 200
    assert "Welcome, Amina!" in first.text

    second = client.get("/checkin/abc123")
    assert second.status_code == 200
    assert "Already Checked In" in second.text
    assert "Scan count: 2" in second.text

    missing = client.get("/checkin/nonexistent-token-xyz")
    assert missing.status_code == 404
    assert "Invalid QR Code" in missing.text


def test_guest_checkin_json(client, sample_guests):
    response = client.post("/guest/checkin", json={"token": "fam789"})
    body = response.json()
    assert response.status_code == 200
    assert body["message"] == "All 4 family members are checked in!"
    assert body["data"]["status"] == "success"

    response = client.post("/guest/checkin", json={"token": "fam789"})
    assert response.json()["message"] == "Already checked in"
    assert response.json()["data"]["guest"]["scan_count"] == 2

    response = client.post("/guest/checkin", json={"token": "nope"})
    assert response.status_code == 404
    assert response.json()["error_code"] == "invalid_token"


def test_scan_rate_limit(client, sample_guests, monkeypatch):
    monkeypatch.setattr(main.settings, "RATE_LIMIT_PER_MINUTE", 2)
    for _ in range(2):
        client.post("/guest/checkin", json={"token": "abc123"})
    assert client.post("/guest/checkin", json={"token": "abc123"}).status_code == 429


def test_persistence_failure_returns_503(client, sample_guests, monkeypatch):
    from sqlalchemy.exc import OperationalError
    from app.services.repositories import GuestRepo

    def failing_mark(*args, **kwargs):
        raise OperationalError("UPDATE guests", {}, Exception("disk I/O error"))

    monkeypatch.setattr(GuestRepo, "mark_checked_in", staticmethod(failing_mark))

    response = client.post("/guest/checkin", json={"token": "abc123"})
    assert response.status_code == 503
    assert response.json()["error_code"] == "persistence_failure"


def test_manual_checkin_records_operator(client, db_session, sample_event, sample_guests, volunteer, volunteer_headers):
    guest = sample_guests["vip001"]
    url = f"/admin/events/{sample_event.id}/guests/{guest.id}/checkin"

    response = client.post(url, headers=volunteer_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "success"
    assert response.json()["data"]["checked_in_by"] == "Yusuf"

    response = client.post(url, headers=volunteer_headers)
    assert response.json()["message"] == "Guest was already checked in"

    db_session.expire_all()
    assert db_session.get(Guest, guest.id).checked_in_by == volunteer.id

    missing = client.post(f"/admin/events/{sample_event.id}/guests/99999/checkin", headers=volunteer_headers)
    assert missing.status_code == 404


def test_admin_routes_need_token(client, sample_event):
    assert client.get(f"/admin/events/{sample_event.id}/stats").status_code in (401, 403)
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get(f"/admin/events/{sample_event.id}/stats", headers=bad).status_code == 401


def test_volunteer_cannot_use_admin_only_routes(client, sample_event, volunteer_headers):
    response = client.post(
        f"/admin/events/{sample_event.id}/guests",
        json={"guests": [{"name": "Sneaky"}]},
        headers=volunteer_headers
    )
    assert response.status_code == 403
    assert client.get("/admin/users", headers=volunteer_headers).status_code == 403


def test_register_and_search_guests(client, sample_event, admin_headers):
    response = client.post(
        f"/admin/events/{sample_event.id}/guests",
        json={"guests": [
            {"name": "  Layla  ", "category": "teacher"},
            {"name": "The Noor Family", "category": "family", "family_size": 5},
        ]},
        headers=admin_headers
    )
    assert response.status_code == 201
    guests = response.json()["data"]["guests"]
    assert [g["name"] for g in guests] == ["Layla", "The Noor Family"]
    assert guests[1]["family_size"] == 5
    assert guests[0]["checkin_url"].endswith(f"/checkin/{guests[0]['token']}")
    assert all(g["checked_in"] is False for g in guests)

    response = client.get(
        f"/admin/events/{sample_event.id}/guests",
        params={"search": "noor"},
        headers=admin_headers
    )
    data = response.json()["data"]
    assert data["pagination"]["total"] == 1
    assert data["guests"][0]["name"] == "The Noor Family"

    qr = client.get(f"/admin/events/{sample_event.id}/guests/{guests[0]['id']}/qr.png", headers=admin_headers)
    assert qr.headers["content-type"] == "image/png"


def test_register_rejects_empty_batch(client, sample_event, admin_headers):
    response = client.post(
        f"/admin/events/{sample_event.id}/guests",
        json={"guests": []},
        headers=admin_headers
    )
    assert response.status_code == 422


def test_dashboard_data(client, sample_event, sample_guests, volunteer_headers):
    client.get("/checkin/abc123")
    client.get("/checkin/abc123")
    base = f"/admin/events/{sample_event.id}"

    stats = client.get(f"{base}/stats", headers=volunteer_headers).json()["data"]
    assert stats["checked_in"] == 1
    assert stats["duplicate_scans"] == 1

    activity = client.get(f"{base}/activity", params={"limit": 5}, headers=volunteer_headers).json()["data"]
    assert [a["action"] for a in activity][:2] == ["duplicate_scan", "checkin"]

    timeline = client.get(f"{base}/timeline", headers=volunteer_headers).json()["data"]
    assert sum(point["count"] for point in timeline) == 1

    summary = client.get("/events/IFTAR26/summary").json()["data"]
    assert summary["checked_in_guests"] == 1
    assert client.get("/events/UNKNOWN/summary").status_code == 404


def test_dashboard_page(client, sample_event):
    response = client.get("/", params={"event": "IFTAR26"})
    assert response.status_code == 200
    assert "Community Iftar" in response.text


def test_export(client, sample_event, sample_guests, admin_headers):
    client.get("/checkin/vip001")
    base = f"/admin/events/{sample_event.id}/export"

    xlsx = client.get(f"{base}/guests.xlsx", headers=admin_headers)
    assert xlsx.status_code == 200
    df = pd.read_excel(io.BytesIO(xlsx.content))
    assert df[df["Name"] == "Dr. Salma"].iloc[0]["Checked In"] == "Yes"

    csv = client.get(f"{base}/guests.csv", headers=admin_headers)
    assert csv.headers["content-type"].startswith("text/csv")
    assert "Dr. Salma" in csv.text

    assert client.get(f"{base}/guests.pdf", headers=admin_headers).status_code == 400


def test_reset_guests(client, sample_event, sample_guests, admin_headers):
    response = client.delete(f"/admin/events/{sample_event.id}/guests", headers=admin_headers)
    assert response.json()["data"]["deleted"] == 4

    assert client.get("/checkin/abc123").status_code == 404


def test_event_update(client, sample_event, admin_headers):
    response = client.patch(
        f"/admin/events/{sample_event.id}",
        json={"venue": "Main Hall"},
        headers=admin_headers
    )
    assert response.json()["data"]["venue"] == "Main Hall"
    assert response.json()["data"]["name"] == "Community Iftar"


def test_user_management(client, admin_user, admin_headers):
    response = client.post(
        "/admin/users",
        json={"username": "Maryam", "password": "secret-1", "display_name": "Maryam"},
        headers=admin_headers
    )
    assert response.status_code == 201
    created = response.json()["data"]
    assert created["username"] == "maryam"
    assert created["role"] == "volunteer"

    duplicate = client.post(
        "/admin/users",
        json={"username": "maryam", "password": "secret-2", "display_name": "Other"},
        headers=admin_headers
    )
    assert duplicate.status_code == 409

    toggled = client.post(f"/admin/users/{created['id']}/toggle", headers=admin_headers)
    assert toggled.json()["data"]["is_active"] is False

    assert client.post(f"/admin/users/{admin_user.id}/toggle", headers=admin_headers).status_code == 400

    deactivated = client.post("/auth/login", json={"username": "maryam", "password": "secret-1"})
    assert deactivated.status_code == 401


def test_websocket_receives_live_checkins(client, sample_event, sample_guests):
    with client.websocket_connect("/ws/events/IFTAR26") as websocket:
        welcome = websocket.receive_json()
        assert welcome["type"] == "connection"

        client.post("/guest/checkin", json={"token": "def456"})
        message = websocket.receive_json()
        assert message["type"] == "checkin"
        assert message["guest"]["name"] == "Omar Haddad"

        client.post("/guest/checkin", json={"token": "def456"})
        message = websocket.receive_json()
        assert message["type"] == "duplicate_scan"
        assert message["guest"]["scan_count"] == 2

        websocket.send_json({"type": "ping", "timestamp": 1})
        assert websocket.receive_json() == {"type": "pong", "timestamp": 1}


def test_open_dashboard_does_not_starve_checkins(tmp_path, monkeypatch):
    """A connected dashboard holds no database connection"""
    from datetime import datetime
    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    from app.core.db import Base
    from app.models import Event

    engine = create_engine(
        f"sqlite:///{tmp_path / 'small_pool.db'}",
        connect_args={"check_same_thread": False},
        pool_size=1,
        max_overflow=0,
        pool_timeout=1
    )
    Base.metadata.create_all(bind=engine)
    SmallPoolSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = SmallPoolSession()
    event = Event(name="Open Day", date=datetime(2026, 5, 1, 9, 0), public_code="OPEN1", is_active=True)
    db.add(event)
    db.flush()
    db.add(Guest(event_id=event.id, token="tok1", name="Hana", category="guest"))
    db.commit()
    db.close()

    def override_get_db():
        session = SmallPoolSession()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(main, "init_db", lambda: None)
    main.app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(main.app) as client:
            with client.websocket_connect("/ws/events/OPEN1") as websocket:
                assert websocket.receive_json()["type"] == "connection"

                response = client.post("/guest/checkin", json={"token": "tok1"})
                assert response.status_code == 200
                assert response.json()["data"]["status"] == "success"
                assert websocket.receive_json()["type"] == "checkin"
    finally:
        main.app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def test_lookup_failure_returns_503(client, sample_guests, monkeypatch):
    from sqlalchemy.exc import OperationalError
    from app.services.repositories import GuestRepo

    def failing_lookup(*args, **kwargs):
        raise OperationalError("SELECT guests", {}, Exception("disk I/O error"))

    monkeypatch.setattr(GuestRepo, "get_by_token", staticmethod(failing_lookup))

    response = client.post("/guest/checkin", json={"token": "abc123"})
    assert response.status_code == 503
    assert response.json()["error_code"] == "persistence_failure"
