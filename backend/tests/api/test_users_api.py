"""
User management API tests: admin-only CRUD, role ceilings and audit entries
"""
import pytest

from app.models.user import UserRole

API = "/api/v1/users"
TEST_PASSWORD = "testpassword123"


def new_user(**fields) -> dict:
    payload = {
        "email": "Chofer.Nuevo@Example.com",
        "password": "supersecret1",
        "role": "driver",
        "first_name": "Luis",
        "last_name": "Pérez",
    }
    payload.update(fields)
    return payload


async def entity_history(client, headers, user_id: str) -> dict:
    response = await client.get(f"/api/v1/audit/entity/User/{user_id}", headers=headers)
    return {entry["action"]: entry for entry in response.json()["items"]}


class TestAccess:

    @pytest.mark.parametrize("role", [UserRole.CLIENT, UserRole.DEPARTMENT_MANAGER, UserRole.EMPLOYEE, UserRole.GUEST])
    async def test_non_admins_are_rejected(self, client, make_user, headers_for, role):
        user = await make_user(role)

        listing = await client.get(API, headers=headers_for(user))
        created = await client.post(API, json=new_user(), headers=headers_for(user))

        assert listing.status_code == 403
        assert created.status_code == 403

    async def test_requires_authentication(self, client):
        response = await client.get(API)

        assert response.status_code in (401, 403)


class TestCreate:

    async def test_create_with_role(self, client, admin_user, admin_headers):
        response = await client.post(
            API, json=new_user(department_id="dept-9", client_id="org-1"), headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["email"] == "chofer.nuevo@example.com"
        assert data["role"] == "driver"
        assert data["role_level"] == 2
        assert data["department_id"] == "dept-9"
        assert data["client_id"] == "org-1"
        assert data["is_active"] is True
        assert "hashed_password" not in data

    async def test_created_user_can_sign_in(self, client, admin_user, admin_headers):
        await client.post(API, json=new_user(role="department_manager"), headers=admin_headers)

        response = await client.post("/api/v1/auth/login", json={
            "email": "chofer.nuevo@example.com",
            "password": "supersecret1",
        })

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "department_manager"

    async def test_duplicate_email(self, client, admin_user, admin_headers):
        response = await client.post(API, json=new_user(email="ADMIN@example.com"), headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["error"]["details"]["field"] == "email"

    async def test_duplicate_username(self, client, admin_user, admin_headers):
        await client.post(API, json=new_user(username="luis"), headers=admin_headers)

        response = await client.post(
            API, json=new_user(email="otro@example.com", username="luis"), headers=admin_headers
        )

        assert response.status_code == 409
        assert response.json()["error"]["details"]["field"] == "username"

    async def test_admin_cannot_create_superadmin(self, client, admin_user, admin_headers):
        response = await client.post(API, json=new_user(role="superadmin"), headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "NOT_AUTHORIZED"

    async def test_superadmin_can_create_admin(self, client, make_user, headers_for):
        root = await make_user(UserRole.SUPERADMIN)

        response = await client.post(API, json=new_user(role="admin"), headers=headers_for(root))

        assert response.status_code == 201

    @pytest.mark.parametrize("payload", [
        new_user(role="pilot"),
        new_user(password="short"),
        new_user(email="not-an-email"),
    ])
    async def test_invalid_payload(self, client, admin_user, admin_headers, payload):
        response = await client.post(API, json=payload, headers=admin_headers)

        assert response.status_code == 422

    async def test_create_is_audited(self, client, admin_user, admin_headers):
        user = (await client.post(API, json=new_user(), headers=admin_headers)).json()["data"]

        history = await entity_history(client, admin_headers, user["id"])

        assert history["CREATE"]["changes"] == {"email": "chofer.nuevo@example.com", "role": "driver"}
        assert history["CREATE"]["user_id"] == str(admin_user.id)


class TestRead:

    async def test_listing_hides_superadmins_from_admins(self, client, admin_user, admin_headers, make_user):
        await make_user(UserRole.SUPERADMIN, email="root@example.com")
        await make_user(UserRole.DRIVER, email="driver@example.com")

        response = await client.get(API, headers=admin_headers)

        emails = {u["email"] for u in response.json()["data"]}
        assert emails == {"admin@example.com", "driver@example.com"}

    async def test_superadmin_sees_everyone(self, client, make_user, headers_for, admin_user):
        root = await make_user(UserRole.SUPERADMIN, email="root@example.com")

        response = await client.get(API, headers=headers_for(root))

        assert response.json()["recordsTotal"] == 2

    async def test_filters_and_search(self, client, admin_user, admin_headers, make_user):
        await make_user(UserRole.DRIVER, email="uno@example.com", department_id="dept-1")
        await make_user(UserRole.DRIVER, email="dos@example.com", department_id="dept-2")
        await make_user(UserRole.EMPLOYEE, email="tres@example.com", department_id="dept-1")

        by_role = (await client.get(API, params={"role": "driver"}, headers=admin_headers)).json()
        by_department = (await client.get(
            API, params={"role": "driver", "department_id": "dept-1"}, headers=admin_headers
        )).json()
        by_search = (await client.get(API, params={"search[value]": "tres"}, headers=admin_headers)).json()

        assert by_role["recordsFiltered"] == 2
        assert [u["email"] for u in by_department["data"]] == ["uno@example.com"]
        assert [u["email"] for u in by_search["data"]] == ["tres@example.com"]

    async def test_unknown_role_filter(self, client, admin_user, admin_headers):
        response = await client.get(API, params={"role": "pilot"}, headers=admin_headers)

        assert response.status_code == 400

    async def test_get_user(self, client, admin_user, admin_headers, employee_user):
        response = await client.get(f"{API}/{employee_user.id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["email"] == "employee@example.com"

    async def test_get_missing_user(self, client, admin_user, admin_headers):
        response = await client.get(f"{API}/missing", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "USER_NOT_FOUND"

    async def test_superadmin_is_not_found_for_admins(self, client, admin_user, admin_headers, make_user):
        root = await make_user(UserRole.SUPERADMIN)

        response = await client.get(f"{API}/{root.id}", headers=admin_headers)

        assert response.status_code == 404


class TestUpdate:

    async def test_promote_and_assign_department(self, client, admin_user, admin_headers, make_user):
        guest = await make_user(UserRole.GUEST, email="nuevo@example.com")

        response = await client.put(
            f"{API}/{guest.id}",
            json={"role": "department_manager", "department_id": "dept-3", "client_id": "org-7"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["role"] == "department_manager"
        assert data["department_id"] == "dept-3"
        assert data["client_id"] == "org-7"

        history = await entity_history(client, admin_headers, guest.id)
        assert history["UPDATE"]["changes"]["role"] == {"old": "guest", "new": "department_manager"}
        assert history["UPDATE"]["changes"]["department_id"] == {"old": None, "new": "dept-3"}

    async def test_promoted_user_reaches_quotes(self, client, admin_user, admin_headers, make_user, headers_for):
        guest = await make_user(UserRole.GUEST)
        assert (await client.get("/api/v1/quotes", headers=headers_for(guest))).status_code == 403

        await client.put(f"{API}/{guest.id}", json={"role": "client"}, headers=admin_headers)

        assert (await client.get("/api/v1/quotes", headers=headers_for(guest))).status_code == 200

    async def test_clear_department(self, client, admin_user, admin_headers, manager_user):
        response = await client.put(f"{API}/{manager_user.id}", json={"department_id": None}, headers=admin_headers)

        assert response.json()["data"]["department_id"] is None

    async def test_no_changes_writes_no_audit_entry(self, client, admin_user, admin_headers, employee_user):
        await client.put(f"{API}/{employee_user.id}", json={"role": "employee"}, headers=admin_headers)

        history = await entity_history(client, admin_headers, employee_user.id)

        assert "UPDATE" not in history

    async def test_cannot_grant_above_own_level(self, client, admin_user, admin_headers, employee_user):
        response = await client.put(f"{API}/{employee_user.id}", json={"role": "superadmin"}, headers=admin_headers)

        assert response.status_code == 403

    async def test_cannot_change_own_role(self, client, admin_user, admin_headers):
        response = await client.put(f"{API}/{admin_user.id}", json={"role": "guest"}, headers=admin_headers)

        assert response.status_code == 403

    async def test_can_edit_own_name(self, client, admin_user, admin_headers):
        response = await client.put(f"{API}/{admin_user.id}", json={"first_name": "Marta"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["first_name"] == "Marta"


class TestToggleStatus:

    async def test_deactivate_blocks_access(self, client, admin_user, admin_headers, employee_user, employee_headers):
        response = await client.patch(
            f"{API}/{employee_user.id}/toggle-status", json={"active": False}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["data"]["is_active"] is False
        me = await client.get("/api/v1/auth/me", headers=employee_headers)
        assert me.status_code == 403

        history = await entity_history(client, admin_headers, employee_user.id)
        assert history["UPDATE"]["changes"] == {"is_active": {"old": True, "new": False}}

    async def test_reactivate(self, client, admin_user, admin_headers, make_user):
        user = await make_user(UserRole.DRIVER, is_active=False)

        response = await client.patch(f"{API}/{user.id}/toggle-status", json={"active": True}, headers=admin_headers)

        assert response.json()["data"]["is_active"] is True

    async def test_cannot_deactivate_self(self, client, admin_user, admin_headers):
        response = await client.patch(
            f"{API}/{admin_user.id}/toggle-status", json={"active": False}, headers=admin_headers
        )

        assert response.status_code == 403

    async def test_admin_cannot_touch_superadmin(self, client, make_user, headers_for):
        root = await make_user(UserRole.SUPERADMIN)
        admin = await make_user(UserRole.ADMIN)

        response = await client.patch(
            f"{API}/{root.id}/toggle-status", json={"active": False}, headers=headers_for(admin)
        )

        assert response.status_code == 404


class TestDelete:

    async def test_soft_delete(self, client, admin_user, admin_headers, employee_user, db_session):
        response = await client.delete(f"{API}/{employee_user.id}", headers=admin_headers)

        assert response.status_code == 200
        await db_session.refresh(employee_user)
        assert employee_user.exists is False
        assert employee_user.is_active is False

        assert (await client.get(f"{API}/{employee_user.id}", headers=admin_headers)).status_code == 404
        login = await client.post("/api/v1/auth/login", json={
            "email": "employee@example.com",
            "password": TEST_PASSWORD,
        })
        assert login.status_code == 401

        history = await entity_history(client, admin_headers, employee_user.id)
        assert history["DELETE"]["changes"] == {"email": "employee@example.com", "role": "employee"}

    async def test_deleted_email_stays_taken(self, client, admin_user, admin_headers, employee_user):
        await client.delete(f"{API}/{employee_user.id}", headers=admin_headers)

        response = await client.post(API, json=new_user(email="employee@example.com"), headers=admin_headers)

        assert response.status_code == 409

    async def test_cannot_delete_self(self, client, admin_user, admin_headers):
        response = await client.delete(f"{API}/{admin_user.id}", headers=admin_headers)

        assert response.status_code == 403

    async def test_admin_cannot_delete_peer_superadmin(self, client, make_user, headers_for):
        admin = await make_user(UserRole.ADMIN)
        root = await make_user(UserRole.SUPERADMIN)

        response = await client.delete(f"{API}/{root.id}", headers=headers_for(admin))

        assert response.status_code == 404
