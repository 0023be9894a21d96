# tests/test_api.py

"""
HTTP-level tests: auth, the business endpoints, status codes and
role code redaction.
"""

from app.core.security import create_access_token
from app.models.user import User

PASSWORD = "secret123"


# ==========================================
# 1. AUTH
# ==========================================

async def test_register_and_me(client):
    response = await client.post("/auth/register", json={
        "name": "New Owner", "email": "New@Example.com", "password": "secret123",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["business"] is None
    assert "hashed_password" not in data["user"]

    me = await client.get("/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "new@example.com"


async def test_register_duplicate_email_is_case_insensitive(client, owner):
    response = await client.post("/auth/register", json={
        "name": "Again", "email": "A@X.COM", "password": "secret123",
    })
    assert response.status_code == 409


async def test_register_short_password(client):
    response = await client.post("/auth/register", json={
        "name": "Shorty", "email": "short@x.com", "password": "123",
    })
    assert response.status_code == 422


async def test_login(client, owner):
    response = await client.post("/auth/login", data={"username": "A@x.com", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["access_token"]

    response = await client.post("/auth/login", data={"username": "a@x.com", "password": "wrong-one"})
    assert response.status_code == 401


async def test_token_response_shape(client, owner, acme):
    response = await client.post("/auth/login", data={"username": "a@x.com", "password": PASSWORD})
    data = response.json()
    assert set(data) == {"access_token", "token_type", "user"}
    assert data["token_type"] == "bearer"
    assert "hashed_password" not in data["user"]
    assert data["user"]["business"]["business_code"] == "ACME12"

    schema = (await client.get("/openapi.json")).json()
    login = schema["paths"]["/auth/login"]["post"]["responses"]["200"]
    assert login["content"]["application/json"]["schema"]["$ref"].endswith("/Token")
    register = schema["paths"]["/auth/register"]["post"]["responses"]["201"]
    assert register["content"]["application/json"]["schema"]["$ref"].endswith("/Token")


async def test_invalid_token(client):
    response = await client.get("/business/details", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


async def test_token_for_deleted_user(client, outsider, auth_headers):
    headers = auth_headers(outsider)
    await outsider.delete()

    response = await client.get("/business/details", headers=headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "User not found"


async def test_non_access_token_is_rejected(client, outsider):
    token = create_access_token(data={"sub": str(outsider.user_id), "type": "reset"})
    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# ==========================================
# 2. BUSINESS FLOW
# ==========================================

async def test_create_business_endpoint(client, outsider, auth_headers):
    response = await client.post(
        "/business/", json={"business_name": "Corner Shop", "business_code": "shop01"},
        headers=auth_headers(outsider),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["business"]["business_code"] == "SHOP01"
    assert len(data["business"]["roles"]) == 6
    assert all(r["role_code"] for r in data["business"]["roles"])
    assert data["user"]["business"]["is_business_owner"] is True

    again = await client.post(
        "/business/", json={"business_name": "Second"}, headers=auth_headers(outsider),
    )
    assert again.status_code == 409


async def test_details_without_business(client, outsider, auth_headers):
    response = await client.get("/business/details", headers=auth_headers(outsider))
    assert response.status_code == 200
    assert response.json()["business"] == {"staff": [], "roles": []}


async def test_join_and_details(client, owner, acme, staff_user, auth_headers):
    code = acme.find_role("role_manager").role_code

    response = await client.post(
        "/business/join", json={"role_code": code, "phone": "9999999999"},
        headers=auth_headers(staff_user),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["staff_id"] == "ACME12001"
    assert data["role"] == "Manager"
    assert data["already_member"] is False
    assert data["user"]["business"]["role"] == "Manager"

    again = await client.post(
        "/business/join", json={"role_code": code, "phone": "9999999999"},
        headers=auth_headers(staff_user),
    )
    assert again.status_code == 200
    assert again.json()["already_member"] is True
    assert len(again.json()["business"]["staff"]) == 1

    # Staff do not get to see the join codes; the owner does
    staff_view = await client.get("/business/details", headers=auth_headers(staff_user))
    assert all(r["role_code"] is None for r in staff_view.json()["business"]["roles"])
    owner_view = await client.get("/business/details", headers=auth_headers(owner))
    assert all(r["role_code"] for r in owner_view.json()["business"]["roles"])


async def test_join_unknown_code(client, acme, staff_user, auth_headers):
    response = await client.post(
        "/business/join", json={"role_code": "ACME12-NOPE00"}, headers=auth_headers(staff_user),
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Invalid role code"


async def test_staff_list_requires_staff_read(client, owner, acme, staff_user, outsider, auth_headers):
    await client.post(
        "/business/join", json={"role_code": acme.find_role("role_delivery").role_code},
        headers=auth_headers(staff_user),
    )

    denied = await client.get("/business/staff", headers=auth_headers(staff_user))
    assert denied.status_code == 403

    # Promote to Manager; the cached snapshot catches up on the next details call
    await client.put(
        "/business/staff/ACME12001/role", json={"role": "Manager"}, headers=auth_headers(owner),
    )
    still_denied = await client.get("/business/staff", headers=auth_headers(staff_user))
    assert still_denied.status_code == 403

    await client.get("/business/details", headers=auth_headers(staff_user))
    allowed = await client.get("/business/staff", headers=auth_headers(staff_user))
    assert allowed.status_code == 200
    assert [s["staff_id"] for s in allowed.json()] == ["ACME12001"]

    assert (await client.get("/business/staff", headers=auth_headers(outsider))).status_code == 403
    assert (await client.get("/business/staff", headers=auth_headers(owner))).status_code == 200


async def test_role_endpoints(client, owner, acme, auth_headers):
    created = await client.post(
        "/business/roles",
        json={"role_name": "Cashier", "permissions": [{"module": "orders", "actions": ["read", "create"]}]},
        headers=auth_headers(owner),
    )
    assert created.status_code == 200
    role_id = created.json()["role_id"]

    updated = await client.post(
        "/business/roles",
        json={"id": role_id, "role_name": "Head Cashier", "permissions": []},
        headers=auth_headers(owner),
    )
    role = next(r for r in updated.json()["business"]["roles"] if r["id"] == role_id)
    assert role["role_name"] == "Head Cashier"
    assert role["role_version"] == 2

    protected = await client.delete("/business/roles/role_manager", headers=auth_headers(owner))
    assert protected.status_code == 400
    assert protected.json()["detail"] == "Cannot delete default roles"

    deleted = await client.delete(f"/business/roles/{role_id}", headers=auth_headers(owner))
    assert deleted.status_code == 200
    assert len(deleted.json()["business"]["roles"]) == 6


async def test_invalid_permission_module_is_rejected(client, owner, acme, auth_headers):
    response = await client.post(
        "/business/roles",
        json={"role_name": "Pilot", "permissions": [{"module": "cockpit", "actions": ["read"]}]},
        headers=auth_headers(owner),
    )
    assert response.status_code == 422


async def test_staff_endpoints(client, owner, acme, staff_user, auth_headers):
    added = await client.post(
        "/business/staff",
        json={"name": "Eve", "email": "eve@x.com", "phone": "1", "role": "Sales Person", "salary": 1000},
        headers=auth_headers(owner),
    )
    assert added.status_code == 201
    staff_id = added.json()["staff"]["staff_id"]

    updated = await client.put(
        f"/business/staff/{staff_id}", json={"salary": 1500, "role": "Accountant"},
        headers=auth_headers(owner),
    )
    assert updated.status_code == 200
    assert updated.json()["staff"]["salary"] == 1500
    assert updated.json()["staff"]["role"] == "Accountant"

    forbidden = await client.delete(f"/business/staff/{staff_id}", headers=auth_headers(staff_user))
    assert forbidden.status_code == 403

    removed = await client.delete(f"/business/staff/{staff_id}", headers=auth_headers(owner))
    assert removed.status_code == 200
    assert removed.json()["business"]["staff"] == []

    missing = await client.delete(f"/business/staff/{staff_id}", headers=auth_headers(owner))
    assert missing.status_code == 404


async def test_leave_endpoint(client, acme, staff_user, auth_headers):
    await client.post(
        "/business/join", json={"role_code": acme.find_role("role_sales").role_code},
        headers=auth_headers(staff_user),
    )

    response = await client.post("/business/leave", headers=auth_headers(staff_user))
    assert response.status_code == 200
    assert response.json()["user"]["business"] is None

    stored = await User.find_one(User.user_id == staff_user.user_id)
    assert stored.business is None
