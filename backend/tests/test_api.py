"""HTTP tests for the FastAPI application against an in-memory store."""
import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import create_app
from database.connection import get_db


@pytest.fixture
def app(session_factory):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
async def client(app, world):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def disburser_headers(world):
    return {
        "X-User-Id": world.disburser.id,
        "X-User-Role": "disburser",
        "X-Region-Id": world.region.id,
    }


@pytest.fixture
def admin_headers():
    return {"X-User-Id": str(uuid.uuid4()), "X-User-Role": "admin"}


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["fraud_monitor"]["running"] is False


class TestAllocationEndpoint:
    async def test_allocate_then_duplicate(self, client, world, disburser_headers, admin_headers):
        body = {
            "beneficiary_id": world.alice.id,
            "goods_type_ids": [world.water.id],
            "location": {"latitude": -1.52, "longitude": 37.26},
        }
        first = await client.post("/api/v1/allocations", json=body, headers=disburser_headers)
        assert first.status_code == 201
        assert first.json()["outcome"] == "success"
        assert first.json()["remaining_stock"] == {world.water.id: 2}

        second = await client.post("/api/v1/allocations", json=body, headers=disburser_headers)
        assert second.status_code == 409
        data = second.json()
        assert data["outcome"] == "fraud_rejected"
        assert data["message"] == "The servers are responding slowly. Please try again later."
        assert data["fraud_alert"]["location"] == {"latitude": -1.52, "longitude": 37.26}

        inventory = await client.get(f"/api/v1/inventory/regions/{world.region.id}",
                                     headers=disburser_headers)
        water = [l for l in inventory.json() if l["goods_name"] == "Water"][0]
        assert water["quantity"] == 2

        alerts = await client.get("/api/v1/fraud/alerts", headers=admin_headers)
        assert len(alerts.json()) == 1

    async def test_out_of_stock_is_422(self, client, world, disburser_headers):
        body = {"beneficiary_id": world.alice.id, "goods_type_ids": [world.blankets.id]}
        resp = await client.post("/api/v1/allocations", json=body, headers=disburser_headers)
        assert resp.status_code == 422
        assert resp.json()["error"] == "ValidationError"
        assert "Blankets" in resp.json()["detail"]

    async def test_malformed_beneficiary_is_400(self, client, world, disburser_headers):
        body = {"beneficiary_id": "alice", "goods_type_ids": [world.water.id]}
        resp = await client.post("/api/v1/allocations", json=body, headers=disburser_headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "InvalidIdentifier"

    async def test_admin_cannot_allocate(self, client, world, admin_headers):
        body = {"beneficiary_id": world.alice.id, "goods_type_ids": [world.water.id]}
        resp = await client.post("/api/v1/allocations", json=body, headers=admin_headers)
        assert resp.status_code == 403

    async def test_anonymous_rejected(self, client, world):
        body = {"beneficiary_id": world.alice.id, "goods_type_ids": [world.water.id]}
        resp = await client.post("/api/v1/allocations", json=body)
        assert resp.status_code == 403


class TestInventoryEndpoints:
    async def test_other_region_forbidden_for_disburser(self, client, world, disburser_headers):
        resp = await client.get(f"/api/v1/inventory/regions/{world.other_region.id}",
                                headers=disburser_headers)
        assert resp.status_code == 403

    async def test_admin_reconciles_and_edits(self, client, world, admin_headers):
        resp = await client.get(f"/api/v1/inventory/regions/{world.other_region.id}",
                                headers=admin_headers)
        assert resp.status_code == 200
        lines = resp.json()
        assert {l["quantity"] for l in lines} == {0}

        line_id = lines[0]["id"]
        updated = await client.put(f"/api/v1/inventory/lines/{line_id}",
                                   json={"quantity": 12}, headers=admin_headers)
        assert updated.status_code == 200
        assert updated.json()["quantity"] == 12

        negative = await client.put(f"/api/v1/inventory/lines/{line_id}",
                                    json={"quantity": -3}, headers=admin_headers)
        assert negative.status_code == 422

    async def test_unknown_region_is_404(self, client, admin_headers):
        resp = await client.get(f"/api/v1/inventory/regions/{uuid.uuid4()}", headers=admin_headers)
        assert resp.status_code == 404


class TestBeneficiaryEndpoints:
    async def test_register_and_search(self, client, world, disburser_headers):
        resp = await client.post(
            "/api/v1/beneficiaries",
            json={"name": "Grace Njeri", "unique_identifiers": {"refugee_id": "UNHCR-55"}},
            headers=disburser_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["region_id"] == world.region.id

        found = await client.get("/api/v1/beneficiaries", params={"q": "unhcr"},
                                 headers=disburser_headers)
        assert [b["name"] for b in found.json()] == ["Grace Njeri"]

    async def test_disburser_limited_to_region(self, client, world, disburser_headers):
        resp = await client.get("/api/v1/beneficiaries",
                                params={"region_id": world.other_region.id},
                                headers=disburser_headers)
        assert resp.status_code == 403


class TestAdminEndpoints:
    async def test_catalog_requires_admin(self, client, disburser_headers):
        resp = await client.post("/api/v1/admin/regions", json={"name": "Kitui"},
                                 headers=disburser_headers)
        assert resp.status_code == 403

    async def test_duplicate_goods_type_is_conflict(self, client, admin_headers):
        resp = await client.post("/api/v1/admin/goods-types", json={"name": "Water"},
                                 headers=admin_headers)
        assert resp.status_code == 409

    async def test_disburser_lifecycle(self, client, world, admin_headers):
        created = await client.post(
            "/api/v1/admin/disbursers",
            json={"name": "Peter Kamau", "phone_number": "0700000002", "region_id": world.region.id},
            headers=admin_headers,
        )
        assert created.status_code == 201
        disburser_id = created.json()["id"]

        patched = await client.patch(f"/api/v1/admin/disbursers/{disburser_id}",
                                     json={"is_active": False}, headers=admin_headers)
        assert patched.json()["is_active"] is False

        deleted = await client.delete(f"/api/v1/admin/disbursers/{disburser_id}",
                                      headers=admin_headers)
        assert deleted.status_code == 204

    async def test_dashboard(self, client, world, disburser_headers, admin_headers):
        await client.post("/api/v1/allocations",
                          json={"beneficiary_id": world.alice.id, "goods_type_ids": [world.water.id]},
                          headers=disburser_headers)
        resp = await client.get("/api/v1/dashboard/metrics", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_allocations"] == 1
        assert data["units_distributed"] == {"Water": 1}
        assert len(data["allocations_last_7_days"]) == 7
        assert sum(data["allocations_last_7_days"].values()) == 1
        assert {l["goods_name"] for l in data["low_stock_lines"]} == {"Water", "Blankets"}


class TestRegionScope:
    @pytest.fixture
    async def outsider_headers(self, store, world):
        outsider = await store.create_disburser("Amina Ekai", "0700000003", world.other_region.id)
        return {
            "X-User-Id": outsider.id,
            "X-User-Role": "disburser",
            "X-Region-Id": world.other_region.id,
        }

    async def test_cannot_allocate_to_other_region(self, client, store, world, outsider_headers):
        body = {"beneficiary_id": world.alice.id, "goods_type_ids": [world.water.id]}
        resp = await client.post("/api/v1/allocations", json=body, headers=outsider_headers)

        assert resp.status_code == 403
        assert resp.json()["error"] == "PermissionDenied"
        assert (await store.get_regional_goods_line(world.water_line.id)).quantity == 3
        assert await store.list_allocations() == []

    async def test_cannot_register_into_other_region(self, client, store, world, outsider_headers):
        resp = await client.post(
            "/api/v1/beneficiaries",
            json={"name": "Grace Njeri", "region_id": world.region.id},
            headers=outsider_headers,
        )
        assert resp.status_code == 403
        names = [b.name for b in await store.list_beneficiaries_by_region(world.region.id)]
        assert "Grace Njeri" not in names

    async def test_unknown_beneficiary_still_422(self, client, outsider_headers, world):
        body = {"beneficiary_id": str(uuid.uuid4()), "goods_type_ids": [world.water.id]}
        resp = await client.post("/api/v1/allocations", json=body, headers=outsider_headers)
        assert resp.status_code == 422


class TestAllocationLocks:
    async def test_app_registry_released(self, app, client, world, disburser_headers):
        for beneficiary in (world.alice, world.bob, world.alice):
            await client.post(
                "/api/v1/allocations",
                json={"beneficiary_id": beneficiary.id, "goods_type_ids": [world.water.id]},
                headers=disburser_headers,
            )
        assert len(app.state.allocation_locks) == 0


class TestAdminListings:
    async def test_allocations_carry_names_and_search(self, client, world, disburser_headers,
                                                      admin_headers):
        for beneficiary in (world.alice, world.bob):
            await client.post(
                "/api/v1/allocations",
                json={"beneficiary_id": beneficiary.id, "goods_type_ids": [world.water.id]},
                headers=disburser_headers,
            )

        everything = await client.get("/api/v1/allocations", headers=admin_headers)
        assert everything.status_code == 200
        assert {a["beneficiary_name"] for a in everything.json()} == {"Alice Mwangi", "Bob Otieno"}
        assert {a["disburser_name"] for a in everything.json()} == {"Jane Field"}

        by_name = await client.get("/api/v1/allocations", params={"q": "otieno"},
                                   headers=admin_headers)
        assert [a["beneficiary_id"] for a in by_name.json()] == [world.bob.id]

        by_disburser = await client.get("/api/v1/allocations", params={"q": "jane"},
                                        headers=admin_headers)
        assert len(by_disburser.json()) == 2

        by_id = await client.get("/api/v1/allocations",
                                 params={"disburser_id": str(uuid.uuid4())},
                                 headers=admin_headers)
        assert by_id.json() == []

    async def test_malformed_filters_are_400(self, client, admin_headers):
        allocations = await client.get("/api/v1/allocations", params={"disburser_id": "jane"},
                                       headers=admin_headers)
        assert allocations.status_code == 400

        alerts = await client.get("/api/v1/fraud/alerts", params={"beneficiary_id": "alice"},
                                  headers=admin_headers)
        assert alerts.status_code == 400
        assert alerts.json()["error"] == "InvalidIdentifier"
