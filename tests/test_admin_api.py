from __future__ import annotations

from bruriah.main import app, get_admin_api_key
from bruriah.models import Profile

AUTH = {"Authorization": "Bearer admin-secret"}


def test_admin_view_groups_chats_by_user(admin_client, store) -> None:
    profile = store.save_profile(Profile(auth_user_id="auth-1", username="dina"))
    chat = store.create_chat(profile.id, title="Math")

    response = admin_client.get("/admin-view", headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == [
        {
            "userId": "auth-1",
            "username": "dina",
            "chats": [{"id": chat.id, "title": "Math", "created_at": chat.created_at}],
        }
    ]
    assert response.headers["access-control-allow-origin"] == "*"


def test_admin_retrieve_chats_returns_messages_in_order(admin_client, store) -> None:
    chat = store.create_chat("p1")
    store.add_message(chat.id, "user", "hi")
    store.add_message(chat.id, "assistant", "hello")

    response = admin_client.get("/admin-retrieve-chats", params={"chat_id": chat.id}, headers=AUTH)

    assert response.status_code == 200
    assert [m["content"] for m in response.json()["data"]] == ["hi", "hello"]


def test_admin_retrieve_chats_requires_chat_id(admin_client) -> None:
    response = admin_client.get("/admin-retrieve-chats", headers=AUTH)

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required chat_id parameter"}


def test_unknown_chat_gives_empty_list(admin_client) -> None:
    response = admin_client.get("/admin-retrieve-chats", params={"chat_id": "unknown"}, headers=AUTH)

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": []}


def test_admin_requires_matching_key(admin_client) -> None:
    assert admin_client.get("/admin-view").status_code == 401
    assert admin_client.get("/admin-view", headers={"Authorization": "Bearer wrong"}).status_code == 401


def test_admin_closed_when_key_not_configured(client) -> None:
    app.dependency_overrides[get_admin_api_key] = lambda: ""

    response = client.get("/admin-view", headers=AUTH)

    assert response.status_code == 403


def test_admin_preflight_and_wrong_method(admin_client) -> None:
    preflight = admin_client.options("/admin-view")
    assert preflight.status_code == 200
    assert preflight.text == "OK"
    assert "GET" in preflight.headers["access-control-allow-methods"]

    response = admin_client.post("/admin-view", headers=AUTH)
    assert response.status_code == 405
    assert response.json() == {"error": "Method not allowed"}


def test_browser_preflight_gets_admin_cors_headers(admin_client) -> None:
    response = admin_client.options(
        "/admin-view",
        headers={"Origin": "http://admin.example", "Access-Control-Request-Method": "GET"},
    )

    assert response.status_code == 200
    assert response.text == "OK"
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, OPTIONS"
    assert "access-control-allow-credentials" not in response.headers
