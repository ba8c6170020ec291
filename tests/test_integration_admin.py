"""Integration tests for the employee administration endpoints."""

import pytest
from fastapi.testclient import TestClient

from jobboard import app as app_module


@pytest.fixture
def client():
    return TestClient(app_module.app)


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/auth/login", json={"identifier": "admin", "password": "admin"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['data']['token']}"}


@pytest.fixture
def employee(client):
    response = client.post(
        "/api/auth/signup",
        json={
            "email": "worker@example.com",
            "password": "Worker123!",
            "name": "Worker Bee",
        },
    )
    assert response.status_code == 201
    data = response.json()["data"]
    return {
        "id": data["user"]["id"],
        "headers": {"Authorization": f"Bearer {data['token']}"},
    }


class TestAdminGate:
    """Only admin bearers reach the admin routes."""

    def test_requires_token(self, client):
        assert client.get("/api/admin/employees").status_code == 401

    def test_non_admin_is_forbidden(self, client, employee):
        response = client.get("/api/admin/employees", headers=employee["headers"])

        assert response.status_code == 403
        body = response.json()
        assert body["error"]["code"] == "forbidden"
        assert body["error"]["message"] == "Access denied. Insufficient permissions."


class TestEmployeeManagement:
    """Tests for list/add/get/delete."""

    def test_list_excludes_admin(self, client, admin_headers, employee):
        response = client.get("/api/admin/employees", headers=admin_headers)

        assert response.status_code == 200
        users = response.json()["data"]
        assert [u["id"] for u in users] == [employee["id"]]

    def test_add_employee_returns_no_token(self, client, admin_headers):
        response = client.post(
            "/api/admin/employees",
            headers=admin_headers,
            json={
                "email": "hired@example.com",
                "password": "Hired123!",
                "name": "New Hire",
                "role": "employer",
                "designation": "Recruiter",
            },
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert "token" not in data
        assert data["user"]["role"] == "employer"
        assert data["user"]["designation"] == "Recruiter"
        assert data["user"]["added_by"]

        login = client.post(
            "/api/auth/login", json={"email": "hired@example.com", "password": "Hired123!"}
        )
        assert login.status_code == 200

    def test_add_employee_strips_name(self, client, admin_headers):
        """Admin-created names are trimmed the same way signup trims them."""
        response = client.post(
            "/api/admin/employees",
            headers=admin_headers,
            json={
                "email": "padded@example.com",
                "password": "Padded123!",
                "name": "  Padded Name  ",
            },
        )

        assert response.status_code == 201
        user = response.json()["data"]["user"]
        assert user["name"] == "Padded Name"
        assert user["username"] == "padded_name"

        login = client.post(
            "/api/auth/login", json={"identifier": "padded_name", "password": "Padded123!"}
        )
        assert login.status_code == 200

    def test_add_employee_rejects_blank_name(self, client, admin_headers):
        response = client.post(
            "/api/admin/employees",
            headers=admin_headers,
            json={"email": "blank@example.com", "password": "Blank123!", "name": "   "},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    def test_add_employee_cannot_grant_admin(self, client, admin_headers):
        response = client.post(
            "/api/admin/employees",
            headers=admin_headers,
            json={"email": "boss@example.com", "password": "x", "name": "Boss", "role": "admin"},
        )
        assert response.status_code == 400

    def test_add_duplicate_email_conflicts(self, client, admin_headers, employee):
        response = client.post(
            "/api/admin/employees",
            headers=admin_headers,
            json={"email": "worker@example.com", "password": "x", "name": "Dup"},
        )
        assert response.status_code == 409

    def test_get_employee_includes_applications(self, client, admin_headers, employee):
        response = client.get(f"/api/admin/employees/{employee['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["applications"] == []

    def test_unknown_employee_is_404(self, client, admin_headers):
        response = client.get("/api/admin/employees/missing", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Employee not found"

    def test_delete_employee(self, client, admin_headers, employee):
        response = client.delete(f"/api/admin/employees/{employee['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Employee Worker Bee has been removed"
        assert (
            client.get(f"/api/admin/employees/{employee['id']}", headers=admin_headers).status_code
            == 404
        )


class TestRestriction:
    """Tests for restrict/activate."""

    def test_restrict_blocks_login(self, client, admin_headers, employee):
        response = client.put(
            f"/api/admin/employees/{employee['id']}/restrict",
            headers=admin_headers,
            json={"reason": "Policy violation"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "restricted"

        login = client.post(
            "/api/auth/login", json={"email": "worker@example.com", "password": "Worker123!"}
        )
        assert login.status_code == 403
        assert "restricted" in login.json()["error"]["message"]

    def test_restrict_without_body_uses_default_reason(self, client, admin_headers, employee):
        client.put(f"/api/admin/employees/{employee['id']}/restrict", headers=admin_headers)
        detail = client.get(f"/api/admin/employees/{employee['id']}", headers=admin_headers)

        assert detail.json()["data"]["restrict_reason"] == "No reason provided"

    def test_activate_restores_login(self, client, admin_headers, employee):
        client.put(f"/api/admin/employees/{employee['id']}/restrict", headers=admin_headers)
        response = client.put(
            f"/api/admin/employees/{employee['id']}/activate", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "active"
        login = client.post(
            "/api/auth/login", json={"email": "worker@example.com", "password": "Worker123!"}
        )
        assert login.status_code == 200

    def test_cannot_restrict_admin(self, client, admin_headers):
        admin_id = client.get("/api/auth/me", headers=admin_headers).json()["data"]["id"]
        response = client.put(f"/api/admin/employees/{admin_id}/restrict", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Cannot restrict admin user"

    def test_cannot_delete_admin(self, client, admin_headers):
        admin_id = client.get("/api/auth/me", headers=admin_headers).json()["data"]["id"]
        response = client.delete(f"/api/admin/employees/{admin_id}", headers=admin_headers)
        assert response.status_code == 403
