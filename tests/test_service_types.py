import pytest

from conftest import post_json


@pytest.mark.appointments
class TestServiceTypes:
    """/api/service-types"""

    def test_seeded_catalogue_is_public(self, client):
        response = client.get("/api/service-types")

        assert response.status_code == 200
        by_name = {s["name"]: s["downpayment_amount"] for s in response.get_json()["service_types"]}
        assert by_name["Jersey Production"] == 500.0
        assert by_name["Custom Tailoring (eg. Uniforms)"] == 500.0
        assert len(by_name) == 3

    def test_create_update_delete(self, client, admin_headers):
        created = post_json(
            client, "/api/service-types", {"name": "Gown Fitting", "downpayment_amount": 750}, admin_headers
        )
        assert created.status_code == 201
        service_type = created.get_json()["service_type"]
        assert service_type["downpayment_amount"] == 750.0

        updated = post_json(
            client,
            f"/api/service-types/{service_type['id']}",
            {"downpayment_amount": "800.00"},
            admin_headers,
            "put",
        )
        assert updated.get_json()["service_type"]["downpayment_amount"] == 800.0

        deleted = client.delete(f"/api/service-types/{service_type['id']}", headers=admin_headers)
        assert deleted.status_code == 200
        assert client.delete(f"/api/service-types/{service_type['id']}", headers=admin_headers).status_code == 404

    def test_duplicate_name(self, client, admin_headers):
        response = post_json(
            client, "/api/service-types", {"name": "Jersey Production", "downpayment_amount": 100}, admin_headers
        )
        assert response.status_code == 409

    def test_validation(self, client, admin_headers):
        response = post_json(client, "/api/service-types", {"downpayment_amount": 100}, admin_headers)
        assert response.status_code == 422

        response = post_json(
            client, "/api/service-types", {"name": "Hemming", "downpayment_amount": -5}, admin_headers
        )
        assert response.status_code == 422

    def test_customers_cannot_edit(self, client, customer_headers):
        response = post_json(
            client, "/api/service-types", {"name": "Hemming", "downpayment_amount": 50}, customer_headers
        )
        assert response.status_code == 403
