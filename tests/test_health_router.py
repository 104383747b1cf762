from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from tennisflow.database.session import get_db


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "database": "ok"}


def test_health_reports_database_failure(app, client):
    broken = Mock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("down"))

    def override_get_db():
        yield broken

    app.dependency_overrides[get_db] = override_get_db

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_unexpected_errors_are_not_leaked(app, client, make_user, auth_headers):
    from tennisflow.deps import get_point_service

    failing = Mock()
    failing.get_points_summary.side_effect = RuntimeError("secret connection string")
    app.dependency_overrides[get_point_service] = lambda: failing
    user = make_user()

    response = client.get("/api/v1/points/me/summary", headers=auth_headers(user))

    assert response.status_code == 500
    body = response.json()
    assert body["error"]["code"] == "INTERNAL_001"
    assert "secret" not in response.text
