from formforge.guards import RateLimiter, SubmissionGuard
from formforge.main import app


def test_routes_are_mounted(client):
    response = client.get("/openapi.json")
    assert response.status_code == 200

    paths = response.json()["paths"]
    assert "/api/form" in paths
    assert "/api/form/{fid}/responses/export" in paths
    assert "/api/public/forms/{slug}/submit" in paths
    assert "/api/user/token" in paths


def test_app_state_collaborators():
    assert isinstance(app.state.rate_limiter, RateLimiter)
    assert isinstance(app.state.submission_guard, SubmissionGuard)
