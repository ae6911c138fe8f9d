"""
Catalog API tests: vehicle types, vehicles, services, POIs, rates and service types
"""
import pytest
from httpx import AsyncClient

API = "/api/v1"


def vehicle_payload(vehicle_type_id: str, **overrides) -> dict:
    payload = {
        "name": "Sprinter 02",
        "brand": "Mercedes-Benz",
        "model": "Sprinter",
        "year": 2023,
        "license_plate": " qro-200-b ",
        "vin": "wdb9066331s123456",
        "vehicle_type_id": vehicle_type_id,
        "capacity": 19,
    }
    payload.update(overrides)
    return payload


class TestVehicleTypes:

    async def test_create_generates_code(self, client: AsyncClient, admin_headers):
        response = await client.post(
            f"{API}/vehicle-types", json={"name": "  Sprinter Van ", "default_capacity": 19}, headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "Sprinter Van"
        assert data["code"] == "sprinter_van"
        assert data["status"] == "active"

    async def test_duplicate_name_is_case_insensitive(self, client, admin_headers, catalog):
        response = await client.post(f"{API}/vehicle-types", json={"name": "VAN"}, headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"field": "name"}

    async def test_name_without_letters(self, client, admin_headers):
        response = await client.post(f"{API}/vehicle-types", json={"name": "!!!"}, headers=admin_headers)

        assert response.status_code == 400

    async def test_delete_blocked_while_in_use(self, client, admin_headers, catalog):
        response = await client.delete(f"{API}/vehicle-types/{catalog.vehicle_type_id}", headers=admin_headers)

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "RESOURCE_IN_USE"
        assert error["details"] == {"dependency_count": 1}

    async def test_delete_after_vehicle_removed(self, client, admin_headers, catalog):
        await client.delete(f"{API}/vehicles/{catalog.vehicle_id}", headers=admin_headers)

        response = await client.delete(f"{API}/vehicle-types/{catalog.vehicle_type_id}", headers=admin_headers)

        assert response.status_code == 200
        missing = await client.get(f"{API}/vehicle-types/{catalog.vehicle_type_id}", headers=admin_headers)
        assert missing.status_code == 404

    async def test_deleted_name_can_be_reused(self, client, admin_headers):
        created = (await client.post(f"{API}/vehicle-types", json={"name": "Sedan"}, headers=admin_headers)).json()
        await client.delete(f"{API}/vehicle-types/{created['data']['id']}", headers=admin_headers)

        response = await client.post(f"{API}/vehicle-types", json={"name": "Sedan"}, headers=admin_headers)

        assert response.status_code == 201

    async def test_update_regenerates_code(self, client, admin_headers, catalog):
        response = await client.put(
            f"{API}/vehicle-types/{catalog.vehicle_type_id}", json={"name": "Van Lujo"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["code"] == "van_lujo"

    async def test_active_list_hides_archived(self, client, admin_headers, catalog):
        await client.post(f"{API}/vehicle-types", json={"name": "Sedan"}, headers=admin_headers)
        await client.patch(
            f"{API}/vehicle-types/{catalog.vehicle_type_id}/toggle-status", json={"active": False}, headers=admin_headers
        )

        response = await client.get(f"{API}/vehicle-types/active", headers=admin_headers)

        assert [t["name"] for t in response.json()["data"]] == ["Sedan"]

    async def test_listing(self, client, admin_headers, catalog):
        response = await client.get(f"{API}/vehicle-types", params={"search[value]": "va"}, headers=admin_headers)

        body = response.json()
        assert body["recordsFiltered"] == 1
        assert body["data"][0]["code"] == "van"

    async def test_employee_cannot_create(self, client, employee_headers):
        response = await client.post(f"{API}/vehicle-types", json={"name": "Bus"}, headers=employee_headers)

        assert response.status_code == 403


class TestVehicles:

    async def test_create_normalizes_identifiers(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, rate_id=catalog.rate_id),
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["license_plate"] == "QRO-200-B"
        assert data["vin"] == "WDB9066331S123456"
        assert data["maintenance_status"] == "operational"
        assert data["vehicle_type"]["code"] == "van"
        assert data["rate"]["name"] == "Ejecutiva"
        assert data["is_available"] is True

    async def test_duplicate_plate(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, license_plate="qro-100-a", vin=None),
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"field": "license_plate"}

    async def test_duplicate_vin(self, client, admin_headers, catalog):
        await client.post(f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id), headers=admin_headers)

        response = await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, license_plate="QRO-300-C"),
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["error"]["details"] == {"field": "vin"}

    async def test_invalid_maintenance_status(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, maintenance_status="broken"),
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "maintenance_status"}

    async def test_unknown_vehicle_type(self, client, admin_headers, catalog):
        response = await client.post(f"{API}/vehicles", json=vehicle_payload("missing"), headers=admin_headers)

        assert response.status_code == 404

    async def test_inactive_rate_is_rejected(self, client, admin_headers, catalog):
        await client.patch(f"{API}/rates/{catalog.rate_id}/toggle-status", json={"active": False}, headers=admin_headers)

        response = await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, rate_id=catalog.rate_id),
            headers=admin_headers,
        )

        assert response.status_code == 400

    async def test_available_list_excludes_maintenance(self, client, admin_headers, catalog):
        await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, maintenance_status="repair"),
            headers=admin_headers,
        )

        response = await client.get(f"{API}/vehicles/active", headers=admin_headers)

        assert [v["license_plate"] for v in response.json()["data"]] == ["QRO-100-A"]

    async def test_update(self, client, admin_headers, catalog):
        response = await client.put(
            f"{API}/vehicles/{catalog.vehicle_id}",
            json={"maintenance_status": "maintenance", "color": "Blanco"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["maintenance_status"] == "maintenance"
        assert data["color"] == "Blanco"
        assert data["is_available"] is False

    async def test_update_plate_to_own_value(self, client, admin_headers, catalog):
        response = await client.put(
            f"{API}/vehicles/{catalog.vehicle_id}", json={"license_plate": "qro-100-a"}, headers=admin_headers
        )

        assert response.status_code == 200

    async def test_toggle_status(self, client, admin_headers, catalog):
        response = await client.patch(
            f"{API}/vehicles/{catalog.vehicle_id}/toggle-status", json={"active": False}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "archived"
        assert response.json()["data"]["is_available"] is False

    async def test_listing_filters(self, client, admin_headers, catalog):
        await client.post(
            f"{API}/vehicles", json=vehicle_payload(catalog.vehicle_type_id, maintenance_status="repair"),
            headers=admin_headers,
        )

        body = (await client.get(
            f"{API}/vehicles", params={"maintenance_status": "repair"}, headers=admin_headers
        )).json()

        assert body["recordsTotal"] == 2
        assert body["recordsFiltered"] == 1

    async def test_client_can_read_but_not_write(self, client, client_headers, catalog):
        assert (await client.get(f"{API}/vehicles", headers=client_headers)).status_code == 200

        response = await client.delete(f"{API}/vehicles/{catalog.vehicle_id}", headers=client_headers)

        assert response.status_code == 403


class TestServices:

    def payload(self, catalog, **overrides):
        payload = {
            "origin_poi_id": catalog.airport_id,
            "destination_poi_id": catalog.downtown_id,
            "vehicle_type_id": catalog.vehicle_type_id,
            "rate_id": catalog.rate_id,
            "price": 1450.0,
            "note": "  Incluye espera  ",
        }
        payload.update(overrides)
        return payload

    async def test_create(self, client, admin_headers, catalog):
        response = await client.post(f"{API}/services", json=self.payload(catalog), headers=admin_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["origin_poi"]["name"] == "Aeropuerto de Querétaro"
        assert data["destination_poi"]["name"] == "Centro Histórico"
        assert data["price"] == 1450.0
        assert data["note"] == "Incluye espera"

    async def test_origin_is_optional(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/services", json=self.payload(catalog, origin_poi_id=None), headers=admin_headers
        )

        assert response.status_code == 201
        assert response.json()["data"]["origin_poi"] is None

    async def test_same_origin_and_destination(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/services", json=self.payload(catalog, origin_poi_id=catalog.downtown_id), headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "destination_poi_id"}

    @pytest.mark.parametrize("price", [0, -10])
    async def test_price_must_be_positive(self, client, admin_headers, catalog, price):
        response = await client.post(f"{API}/services", json=self.payload(catalog, price=price), headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "price"}

    async def test_note_too_long(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/services", json=self.payload(catalog, note="x" * 501), headers=admin_headers
        )

        assert response.status_code == 400

    async def test_duplicate_route(self, client, admin_headers, catalog):
        await client.post(f"{API}/services", json=self.payload(catalog), headers=admin_headers)

        response = await client.post(f"{API}/services", json=self.payload(catalog, price=999), headers=admin_headers)

        assert response.status_code == 409

    async def test_reverse_route_is_distinct(self, client, admin_headers, catalog):
        await client.post(f"{API}/services", json=self.payload(catalog), headers=admin_headers)

        response = await client.post(
            f"{API}/services",
            json=self.payload(catalog, origin_poi_id=catalog.downtown_id, destination_poi_id=catalog.airport_id),
            headers=admin_headers,
        )

        assert response.status_code == 201

    async def test_update_validates_merged_values(self, client, admin_headers, catalog):
        created = (await client.post(f"{API}/services", json=self.payload(catalog), headers=admin_headers)).json()

        response = await client.put(
            f"{API}/services/{created['data']['id']}",
            json={"destination_poi_id": catalog.airport_id},
            headers=admin_headers,
        )

        assert response.status_code == 400

    async def test_update_price(self, client, admin_headers, catalog):
        created = (await client.post(f"{API}/services", json=self.payload(catalog), headers=admin_headers)).json()

        response = await client.put(
            f"{API}/services/{created['data']['id']}", json={"price": 1600}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["price"] == 1600

    async def test_search_by_poi_name(self, client, admin_headers, catalog):
        await client.post(f"{API}/services", json=self.payload(catalog), headers=admin_headers)

        body = (await client.get(f"{API}/services", params={"search[value]": "Centro"}, headers=admin_headers)).json()

        assert body["recordsFiltered"] == 1


class TestPOIs:

    async def test_create(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/pois", json={"name": " Peña de Bernal ", "service_type_id": catalog.service_type_id},
            headers=admin_headers,
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["name"] == "Peña de Bernal"
        assert data["service_type"]["name"] == "Aeropuerto"

    async def test_blank_name(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/pois", json={"name": "   ", "service_type_id": catalog.service_type_id}, headers=admin_headers
        )

        assert response.status_code == 400

    async def test_inactive_service_type(self, client, admin_headers, catalog):
        await client.patch(
            f"{API}/service-types/{catalog.service_type_id}/toggle-status", json={"active": False}, headers=admin_headers
        )

        response = await client.post(
            f"{API}/pois", json={"name": "Tequisquiapan", "service_type_id": catalog.service_type_id},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"field": "service_type_id"}

    async def test_unknown_service_type_is_a_validation_error(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/pois", json={"name": "Tequisquiapan", "service_type_id": "missing"}, headers=admin_headers
        )

        assert response.status_code == 400

    async def test_duplicate_name(self, client, admin_headers, catalog):
        response = await client.post(
            f"{API}/pois", json={"name": "centro histórico", "service_type_id": catalog.service_type_id},
            headers=admin_headers,
        )

        assert response.status_code == 409

    async def test_active_options(self, client, admin_headers, catalog):
        await client.patch(f"{API}/pois/{catalog.airport_id}/toggle-status", json={"active": False}, headers=admin_headers)

        response = await client.get(f"{API}/pois/active", headers=admin_headers)

        assert [p["name"] for p in response.json()["data"]] == ["Centro Histórico"]


class TestRatesAndServiceTypes:

    async def test_create_rate(self, client, admin_headers):
        response = await client.post(f"{API}/rates", json={"name": "Premium", "color": "#000"}, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["data"]["color"] == "#000"

    async def test_duplicate_rate(self, client, admin_headers, catalog):
        response = await client.post(f"{API}/rates", json={"name": "ejecutiva"}, headers=admin_headers)

        assert response.status_code == 409

    async def test_duplicate_service_type(self, client, admin_headers, catalog):
        response = await client.post(f"{API}/service-types", json={"name": "Aeropuerto"}, headers=admin_headers)

        assert response.status_code == 409

    async def test_rate_toggle_and_active_list(self, client, admin_headers, catalog):
        await client.post(f"{API}/rates", json={"name": "Premium"}, headers=admin_headers)
        await client.patch(f"{API}/rates/{catalog.rate_id}/toggle-status", json={"active": False}, headers=admin_headers)

        response = await client.get(f"{API}/rates/active", headers=admin_headers)

        assert [r["name"] for r in response.json()["data"]] == ["Premium"]

    async def test_toggle_is_audited(self, client, admin_headers, catalog):
        await client.patch(
            f"{API}/service-types/{catalog.service_type_id}/toggle-status", json={"active": False}, headers=admin_headers
        )

        body = (await client.get(
            f"{API}/audit/entity/ServiceType/{catalog.service_type_id}", headers=admin_headers
        )).json()

        assert body["items"][0]["changes"] == {"active": {"old": True, "new": False}}

    async def test_listing_requires_auth(self, client):
        response = await client.get(f"{API}/rates")

        assert response.status_code in (401, 403)
