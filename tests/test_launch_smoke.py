from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.init_db import init_db
from app.models.user import User, UserRole


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


def test_correlation_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_error_envelope(client: TestClient):
    response = client.get("/api/v1/orders/", headers={"X-User-Id": "not-a-number"})

    assert response.status_code == 401
    payload = response.json()
    assert payload["success"] is False
    assert payload["data"] is None
    assert payload["errors"] == []
    assert payload["timestamp"].endswith("Z")


def test_inactive_user_rejected(client: TestClient, db_session: Session):
    user = User(email="inactive@example.com", full_name="Inactive", is_active=False)
    db_session.add(user)
    db_session.commit()

    response = client.get("/api/v1/orders/", headers={"X-User-Id": str(user.id)})

    assert response.status_code == 401


def test_init_db_seeds_admin_once(db_session: Session):
    init_db(db_session)
    init_db(db_session)

    admins = db_session.query(User).filter(User.email == settings.DEFAULT_ADMIN_EMAIL).all()
    assert len(admins) == 1
    assert admins[0].role == UserRole.ADMIN
