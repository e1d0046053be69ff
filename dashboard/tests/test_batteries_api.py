"""
Integration tests for the battery registration routes.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

from fastapi.testclient import TestClient

AUTH_HEADER = {"Authorization": "Bearer test-token-abc"}
OTHER_AUTH_HEADER = {"Authorization": "Bearer test-token-xyz"}


def _register(client: TestClient, battery_id: str, **extra: str) -> dict:
    response = client.post(
        "/v1/batteries",
        json={"serial_number": "SN-1", "battery_id": battery_id, **extra},
        headers=AUTH_HEADER,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestBatteryRoutes:
    """Register, list, options and deactivate."""

    def test_requires_auth(self, client: TestClient) -> None:
        """Registration routes need a bearer token."""
        assert client.get("/v1/batteries").status_code == 401

    def test_register_and_list(self, client: TestClient) -> None:
        """A registration shows up in the user's list."""
        created = _register(client, "440", nickname="Garage")
        assert created["battery_id"] == "0x440"
        assert created["nickname"] == "Garage"
        assert created["is_active"] is True

        listed = client.get("/v1/batteries", headers=AUTH_HEADER).json()
        assert [b["registration_id"] for b in listed] == [created["registration_id"]]

        other = client.get("/v1/batteries", headers=OTHER_AUTH_HEADER).json()
        assert other == []

    def test_invalid_registration(self, client: TestClient) -> None:
        """Validation errors are 400s."""
        response = client.post(
            "/v1/batteries",
            json={"serial_number": "SN-1", "battery_id": "zz-top"},
            headers=AUTH_HEADER,
        )
        assert response.status_code == 400
        assert "hexadecimal" in response.json()["detail"]

    def test_duplicate_registration(self, client: TestClient) -> None:
        """Registering the same battery twice is a 400."""
        _register(client, "0x440")
        response = client.post(
            "/v1/batteries",
            json={"serial_number": "SN-1", "battery_id": "BAT-0x440"},
            headers=AUTH_HEADER,
        )
        assert response.status_code == 400

    def test_missing_body_field(self, client: TestClient) -> None:
        """Schema violations are rejected by request validation."""
        response = client.post(
            "/v1/batteries", json={"serial_number": "SN-1"}, headers=AUTH_HEADER
        )
        assert response.status_code == 422

    def test_options(self, client: TestClient) -> None:
        """Options label batteries by nickname or id."""
        _register(client, "0x440", nickname="Garage")
        _register(client, "0x441")

        options = client.get("/v1/batteries/options", headers=AUTH_HEADER).json()
        assert [(o["value"], o["label"]) for o in options] == [
            ("0x440", "Garage"),
            ("0x441", "0x441"),
        ]
        assert options[1]["tag_id"] == "BAT-0x441"

    def test_deactivate(self, client: TestClient) -> None:
        """Deactivation removes the battery from the list and revokes access."""
        created = _register(client, "0x440")
        registration_id = created["registration_id"]

        response = client.delete(f"/v1/batteries/{registration_id}", headers=AUTH_HEADER)
        assert response.status_code == 200
        assert response.json()["is_active"] is False
        assert client.get("/v1/batteries", headers=AUTH_HEADER).json() == []

        series = client.get(
            "/v1/series", params={"device_id": "0x440"}, headers=AUTH_HEADER
        )
        assert series.status_code == 403

    def test_deactivate_unknown_or_foreign(self, client: TestClient) -> None:
        """Unknown ids and other users' registrations are 404s."""
        created = _register(client, "0x440")
        assert client.delete("/v1/batteries/9999", headers=AUTH_HEADER).status_code == 404
        response = client.delete(
            f"/v1/batteries/{created['registration_id']}", headers=OTHER_AUTH_HEADER
        )
        assert response.status_code == 404
