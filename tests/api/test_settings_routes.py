"""Tests for the firm profile settings endpoints."""


class TestFirmProfile:
    def test_missing_profile(self, client, owner_headers):
        response = client.get("/api/v1/settings/firm", headers=owner_headers)
        assert response.status_code == 404

    def test_patch_creates_then_updates(self, client, owner_headers):
        created = client.patch(
            "/api/v1/settings/firm",
            json={"firm_name": "Lakshmi Jewellers", "firm_phone": "022 2345 6789"},
            headers=owner_headers,
        )
        assert created.status_code == 200
        assert created.json()["firm_name"] == "Lakshmi Jewellers"

        updated = client.patch(
            "/api/v1/settings/firm",
            json={"firm_gstin": "27ABCDE1234F1Z5"},
            headers=owner_headers,
        )
        body = updated.json()
        assert body["firm_name"] == "Lakshmi Jewellers"
        assert body["firm_gstin"] == "27ABCDE1234F1Z5"

        fetched = client.get("/api/v1/settings/firm", headers=owner_headers)
        assert fetched.json()["firm_phone"] == "022 2345 6789"

    def test_new_profile_needs_name(self, client, owner_headers):
        response = client.patch(
            "/api/v1/settings/firm", json={"firm_phone": "022"}, headers=owner_headers
        )
        assert response.status_code == 400

    def test_requires_identity(self, client):
        assert client.get("/api/v1/settings/firm").status_code == 401
