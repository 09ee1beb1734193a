"""
Integration tests for the program config bootstrap endpoints.
"""

ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


def test_initialize_then_already_exists(client, ledger):
    first = client.post("/api/config/initialize", headers=ADMIN_HEADERS)
    second = client.post("/api/config/initialize", headers=ADMIN_HEADERS)

    assert first.status_code == 200
    assert first.get_json()["alreadyExists"] is False
    assert first.get_json()["transaction"] == "sig1"
    assert second.get_json()["alreadyExists"] is True
    assert second.get_json()["configAddress"] == first.get_json()["configAddress"]
    assert len(ledger.submissions) == 1


def test_initialize_requires_admin_token(client, ledger):
    response = client.post("/api/config/initialize", headers={"X-Admin-Token": "wrong"})

    assert response.status_code == 401
    assert ledger.submissions == []


def test_status_reports_existence(client):
    before = client.get("/api/config/initialize").get_json()
    client.post("/api/config/initialize", headers=ADMIN_HEADERS)
    after = client.get("/api/config/initialize").get_json()

    assert before["exists"] is False
    assert after["exists"] is True
    assert before["configAddress"] == after["configAddress"]
    assert "info" in after


def test_unknown_route_is_json(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"
