from fastapi.testclient import TestClient
from leadline.core.settings import Settings
from leadline.main import allowed_origin, app

client = TestClient(app)


def test_read_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"app": "Leadline backend", "status": "ok"}


def test_health_check():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_options_preflight_returns_204_with_cors_headers():
    response = client.options(
        "/leads",
        headers={"Origin": "https://site.example", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == 204
    assert response.headers["access-control-allow-methods"] == "GET, POST, PATCH, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type, Authorization"
    assert "access-control-allow-origin" in response.headers


def test_plain_options_request_returns_204():
    response = client.options("/leads/update")
    assert response.status_code == 204


def test_allowed_origin_reduces_site_url_to_origin():
    assert allowed_origin(Settings(environ={"SITE_URL": "https://site.example/"})) == "https://site.example"
    assert allowed_origin(Settings(environ={"SITE_URL": "https://site.example/admin.html"})) == "https://site.example"
    assert allowed_origin(Settings(environ={"URL": "http://localhost:8888/a/b?x=1"})) == "http://localhost:8888"
    assert allowed_origin(Settings(environ={})) == "*"
    assert allowed_origin(Settings(environ={"SITE_URL": "not a url"})) == "*"
