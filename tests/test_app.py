"""
Tests for the application factory, health routes and seed command.
"""
from model import Activity, Advertisement
from seed import seed_command


def test_health_routes(client):
    assert client.get("/").get_json()["status"] == "healthy"

    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.get_json()["database"] == "connected"

    assert client.get("/ready").get_json() == {"status": "ready"}


def test_unknown_route_returns_json_404(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404


def test_testing_config(app):
    assert app.config["TESTING"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"] == "sqlite:///:memory:"


def test_seed_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(seed_command)
    assert result.exit_code == 0
    assert "Seeded 12 activities and 6 sponsored entries." in result.output
    assert Activity.query.count() == 12
    assert Advertisement.query.count() == 6
