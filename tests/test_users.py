import pytest

from conftest import FakeAsyncSession, FakeResult, entity_handler, make_user

from lendmarket.core.errors import MissingField, NotFound
from lendmarket.core.security import SessionIdentity
from lendmarket.models import User
from lendmarket.schemas.users import UserRoleUpdate
from lendmarket.services import users as users_service

ADMIN = SessionIdentity(email="admin@x.com", role="admin")


def test_find_by_email_returns_list(client, fake_db, borrower_headers):
    user = make_user(email="ada@example.com", name="Ada")
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=user)))

    resp = client.get("/api/v1/users/by-email", params={"email": "ADA@example.com"}, headers=borrower_headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert len(data) == 1
    assert data[0]["email"] == "ada@example.com"
    assert "hashedPassword" not in data[0]
    assert "hashed_password" not in data[0]


def test_find_by_email_requires_email(client, borrower_headers):
    resp = client.get("/api/v1/users/by-email", headers=borrower_headers)
    assert resp.status_code == 400
    assert resp.json()["code"] == "missing_field"


def test_find_by_email_unknown_is_404(client, borrower_headers):
    resp = client.get("/api/v1/users/by-email", params={"email": "ghost@example.com"}, headers=borrower_headers)
    assert resp.status_code == 404


def test_me_returns_current_user(client, fake_db, borrower_headers):
    fake_db.on_execute(entity_handler(User, FakeResult(scalar=make_user(photo_url="https://img/me"))))
    resp = client.get("/api/v1/users/me", headers=borrower_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["photoURL"] == "https://img/me"


def test_admin_lists_borrowers_and_managers(client, fake_db, admin_headers):
    users = [make_user(email="a@x.com"), make_user(email="m@x.com", role="manager")]
    fake_db.on_execute(entity_handler(User, FakeResult(items=users)))

    resp = client.get("/api/v1/users", headers=admin_headers)

    assert resp.status_code == 200
    assert [item["email"] for item in resp.json()["data"]] == ["a@x.com", "m@x.com"]
    compiled = str(fake_db.statements[0].compile(compile_kwargs={"literal_binds": True}))
    assert "'borrower'" in compiled and "'manager'" in compiled


def test_admin_suspends_user(client, fake_db, admin_headers):
    user = make_user()
    fake_db.on_get(User, user.id, user)

    resp = client.patch(
        f"/api/v1/users/{user.id}",
        headers=admin_headers,
        json={"role": "suspended", "suspendReason": "Chargebacks"},
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["role"] == "suspended"
    assert data["suspendReason"] == "Chargebacks"
    assert data["suspendFeedback"] == ""
    assert fake_db.committed is True


def test_update_role_with_unknown_role_is_422(client, admin_headers):
    resp = client.patch(
        "/api/v1/users/00000000-0000-0000-0000-000000000001",
        headers=admin_headers,
        json={"role": "overlord"},
    )
    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_reinstating_user_clears_suspension_fields():
    user = make_user(role="suspended", suspend_reason="fraud", suspend_feedback="call us")
    db = FakeAsyncSession().on_get(User, user.id, user)

    await users_service.update_role(db, str(user.id), UserRoleUpdate(role="borrower"), actor=ADMIN)

    assert user.role == "borrower"
    assert user.suspend_reason is None
    assert user.suspend_feedback is None


@pytest.mark.asyncio
async def test_update_role_requires_role():
    with pytest.raises(MissingField):
        await users_service.update_role(FakeAsyncSession(), "x", UserRoleUpdate(), actor=ADMIN)


@pytest.mark.asyncio
async def test_update_role_unknown_user_is_not_found():
    with pytest.raises(NotFound):
        await users_service.update_role(
            FakeAsyncSession(),
            "00000000-0000-0000-0000-000000000001",
            UserRoleUpdate(role="manager"),
            actor=ADMIN,
        )
