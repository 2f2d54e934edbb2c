"""
Test the work order HTTP API
"""
import pytest

API = "/api/v1/work-orders"


def headers(company, user, role="TECHNICIAN"):
    return {"X-Tenant-Id": str(company.id), "X-User-Id": str(user.id), "X-User-Role": role}


class TestWorkOrderAPI:
    """Test work order endpoints and error mapping."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_create_work_order(self, client, company, supervisor):
        """Test creating a work order with an initial checklist."""
        response = await client.post(
            API,
            json={"title": "Broken radiator", "priority": "HIGH", "tasks": [{"description": "Bleed"}]},
            headers=headers(company, supervisor, "SUPERVISOR"),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "PENDING"
        assert data["priority"] == "HIGH"
        assert data["work_order_number"].startswith("WO-")
        assert [t["description"] for t in data["tasks"]] == ["Bleed"]

    @pytest.mark.asyncio
    async def test_identity_headers_required(self, client):
        response = await client.get(API)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_not_found(self, client, company, supervisor):
        response = await client.get(f"{API}/9999", headers=headers(company, supervisor))
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_lifecycle_and_verify_permission(self, client, company, technician, supervisor):
        """Test the full lifecycle; only supervisors may verify."""
        tech_headers = headers(company, technician)
        created = await client.post(API, json={"title": "Replace lock"}, headers=tech_headers)
        wo_id = created.json()["id"]

        response = await client.post(
            f"{API}/{wo_id}/assign", json={"technician_id": technician.id}, headers=tech_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "ASSIGNED"

        response = await client.post(f"{API}/{wo_id}/start", headers=tech_headers)
        assert response.json()["status"] == "IN_PROGRESS"

        response = await client.post(
            f"{API}/{wo_id}/complete",
            json={"completion_notes": "Lock replaced", "actual_hours": 1.0},
            headers=tech_headers,
        )
        data = response.json()
        assert data["status"] == "COMPLETED"
        assert data["completion_percentage"] == 100
        assert data["labor_cost"] == 40.0

        response = await client.post(f"{API}/{wo_id}/verify", headers=tech_headers)
        assert response.status_code == 403

        response = await client.post(f"{API}/{wo_id}/verify", headers=headers(company, supervisor, "SUPERVISOR"))
        assert response.status_code == 200
        assert response.json()["status"] == "VERIFIED"

        response = await client.get(f"{API}/{wo_id}/history", headers=tech_headers)
        assert [h["to_status"] for h in response.json()] == [
            "PENDING", "ASSIGNED", "IN_PROGRESS", "COMPLETED", "VERIFIED",
        ]

    @pytest.mark.asyncio
    async def test_invalid_transition_is_conflict(self, client, company, technician):
        tech_headers = headers(company, technician)
        wo_id = (await client.post(API, json={"title": "Fix fence"}, headers=tech_headers)).json()["id"]

        response = await client.post(f"{API}/{wo_id}/start", headers=tech_headers)
        assert response.status_code == 409
        assert response.json()["error_code"] == "INVALID_STATE_TRANSITION"

    @pytest.mark.asyncio
    async def test_invalid_input_is_unprocessable(self, client, company, technician):
        tech_headers = headers(company, technician)
        wo_id = (await client.post(API, json={"title": "Fix fence"}, headers=tech_headers)).json()["id"]

        response = await client.post(
            f"{API}/{wo_id}/progress", json={"completion_percentage": 150}, headers=tech_headers
        )
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_INPUT"

        response = await client.post(f"{API}/{wo_id}/cancel", json={"reason": " "}, headers=tech_headers)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_tasks_and_materials(self, client, company, technician):
        tech_headers = headers(company, technician)
        wo_id = (await client.post(API, json={"title": "Service boiler"}, headers=tech_headers)).json()["id"]

        task_ids = []
        for description in ("Inspect", "Clean"):
            response = await client.post(
                f"{API}/{wo_id}/tasks", json={"description": description}, headers=tech_headers
            )
            assert response.status_code == 201
            task_ids.append(response.json()["id"])

        response = await client.patch(f"{API}/tasks/{task_ids[0]}", json={"completed": True}, headers=tech_headers)
        assert response.status_code == 200
        assert response.json()["is_completed"] is True

        response = await client.post(
            f"{API}/{wo_id}/materials",
            json={"item_reference": "Filter", "quantity": 2, "unit_cost": 7.5},
            headers=tech_headers,
        )
        assert response.status_code == 201
        assert response.json()["total_cost"] == 15.0

        data = (await client.get(f"{API}/{wo_id}", headers=tech_headers)).json()
        assert data["completion_percentage"] == 50
        assert data["material_cost"] == 15.0
        assert data["total_cost"] == 15.0
        assert len(data["materials"]) == 1

    @pytest.mark.asyncio
    async def test_list_pagination(self, client, company, technician):
        tech_headers = headers(company, technician)
        for n in range(3):
            await client.post(API, json={"title": f"Job {n}"}, headers=tech_headers)

        response = await client.get(API, params={"page_size": 2}, headers=tech_headers)
        data = response.json()
        assert data["total"] == 3
        assert data["pages"] == 2
        assert len(data["items"]) == 2

    @pytest.mark.asyncio
    async def test_auto_schedule(self, client, company, technician):
        tech_headers = headers(company, technician)
        await client.post(API, json={"title": "Job"}, headers=tech_headers)

        response = await client.post(f"{API}/auto-schedule", headers=tech_headers)
        assert response.status_code == 200
        data = response.json()
        assert len(data["assigned"]) == 1
        assert data["assigned"][0]["technician_id"] == technician.id
        assert data["failed"] == []

    @pytest.mark.asyncio
    async def test_auto_schedule_without_technicians(self, client, company, supervisor):
        response = await client.post(f"{API}/auto-schedule", headers=headers(company, supervisor, "SUPERVISOR"))
        assert response.status_code == 409
        assert response.json()["error_code"] == "NO_CAPACITY_AVAILABLE"

    @pytest.mark.asyncio
    async def test_statistics_and_delete(self, client, company, technician):
        tech_headers = headers(company, technician)
        wo_id = (await client.post(API, json={"title": "Job"}, headers=tech_headers)).json()["id"]

        response = await client.get(f"{API}/statistics", headers=tech_headers)
        assert response.status_code == 200
        assert response.json()["pending"] == 1

        response = await client.delete(f"{API}/{wo_id}", headers=tech_headers)
        assert response.json()["success"] is True

        response = await client.get(f"{API}/{wo_id}", headers=tech_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_read(self, client, company, other_company, technician):
        wo_id = (await client.post(API, json={"title": "Private"}, headers=headers(company, technician))).json()["id"]

        response = await client.get(f"{API}/{wo_id}", headers=headers(other_company, technician))
        assert response.status_code == 404
