from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.password import verify_password
from chatwave_app.users.routers.auth_routers import update_profile
from chatwave_app.users.schemas.user_schemas import ProfileUpdateRequest
from chatwave_app.chating.services.presence_service import mark_online
from conftest import auth_headers


async def test_register_sets_cookie_and_hashes_password(client):
    response = await client.post("/api/auth/register", json={"email": "dana@example.com", "password": "pa55word"})

    assert response.status_code == 201
    assert response.json()["user"]["email"] == "dana@example.com"
    assert "password" not in response.json()["user"]
    assert "jwt" in response.cookies

    stored = await UserModel.find_one(UserModel.email == "dana@example.com")
    assert stored.password != "pa55word"
    assert verify_password("pa55word", stored.password)


async def test_register_validation(client, alice):
    missing = await client.post("/api/auth/register", json={"email": "x@example.com"})
    taken = await client.post("/api/auth/register", json={"email": alice.email, "password": "whatever"})

    assert missing.status_code == 400
    assert taken.status_code == 409
    assert taken.json() == {"status": "error", "message": "User with this email already exists", "code": 409}


async def test_login(client, alice):
    ok = await client.post("/api/auth/login", json={"email": alice.email, "password": "secret123"})
    wrong = await client.post("/api/auth/login", json={"email": alice.email, "password": "nope"})
    unknown = await client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "nope"})

    assert ok.status_code == 200
    assert "jwt" in ok.cookies
    assert wrong.status_code == 401
    assert unknown.status_code == 404


async def test_cookie_session_round_trip(client, alice):
    login = await client.post("/api/auth/login", json={"email": alice.email, "password": "secret123"})
    client.cookies.set("jwt", login.cookies["jwt"])

    info = await client.get("/api/auth/user-info")

    assert info.status_code == 200
    assert info.json()["user"]["id"] == str(alice.id)


async def test_protected_routes_require_a_valid_token(client):
    missing = await client.get("/api/auth/user-info")
    invalid = await client.get("/api/auth/user-info", headers={"Authorization": "Bearer not-a-token"})

    assert missing.status_code == 401
    assert missing.json()["message"] == "Unauthorized"
    assert invalid.status_code == 401
    assert invalid.json()["message"] == "Invalid or expired token"


async def test_update_profile_marks_setup_complete(client):
    user = UserModel(email="eve@example.com", password="x")
    await user.insert()
    headers = auth_headers(user)

    empty = await client.put("/api/auth/update-profile", json={}, headers=headers)
    partial = await client.put("/api/auth/update-profile", json={"first_name": "Eve"}, headers=headers)
    full = await client.put("/api/auth/update-profile", json={"last_name": "Evans", "bio": "hi"}, headers=headers)

    assert empty.status_code == 400
    assert partial.json()["user"]["profile_setup"] is False
    assert full.json()["user"]["profile_setup"] is True
    assert full.json()["user"]["bio"] == "hi"


async def test_user_directory_search_and_profile(client, alice, bob):
    headers = auth_headers(alice)

    found = await client.get("/api/user/fetch-all-users", params={"search": "bak"}, headers=headers)
    profile = await client.get(f"/api/user/profile/{bob.id}", headers=headers)
    missing = await client.get("/api/user/profile/00000000-0000-0000-0000-000000000000", headers=headers)

    assert found.json()["total_users"] == 1
    assert found.json()["users"][0]["id"] == str(bob.id)
    assert profile.json()["first_name"] == "Bob"
    assert missing.status_code == 404


async def test_profile_update_leaves_presence_alone(alice):
    stale = await UserModel.get(alice.id)
    # the socket comes online after the request loaded the user
    await mark_online(alice.id)

    result = await update_profile(ProfileUpdateRequest(bio="new bio"), current_user=stale)

    stored = await UserModel.get(alice.id)
    assert stored.is_online is True
    assert stored.bio == "new bio"
    assert result["user"].is_online is True
