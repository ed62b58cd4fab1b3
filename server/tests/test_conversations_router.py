"""HTTP tests for the chat Read API."""

from bson import ObjectId
from fastapi import status

from conftest import auth_headers


def _open_conversation(client, user, recipient, listing_id=None):
    body = {"recipient_id": recipient}
    if listing_id:
        body["listing_id"] = listing_id
    response = client.post("/api/chat/conversations", json=body, headers=auth_headers(user))
    assert response.status_code == status.HTTP_200_OK
    return response.json()


def test_requires_bearer_token(client):
    response = client.get("/api/chat/conversations")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED

    response = client.get("/api/chat/unread-count", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Invalid or expired token"


def test_create_conversation_is_idempotent(client, alice, bob):
    listing = str(ObjectId())
    first = _open_conversation(client, alice, bob, listing)
    second = _open_conversation(client, bob, alice, listing)
    assert first["id"] == second["id"]
    assert first["listing_id"] == listing
    assert sorted(first["participants"]) == sorted([alice, bob])
    assert first["last_message"] is None


def test_create_conversation_with_self_is_bad_request(client, alice):
    response = client.post("/api/chat/conversations", json={"recipient_id": alice}, headers=auth_headers(alice))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Cannot message yourself"


def test_create_conversation_with_bad_recipient(client, alice):
    response = client.post("/api/chat/conversations", json={"recipient_id": "xyz"}, headers=auth_headers(alice))
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Invalid recipient ID"


def test_send_and_read_history(client, alice, bob):
    convo = _open_conversation(client, alice, bob)
    url = f"/api/chat/conversations/{convo['id']}/messages"

    response = client.post(url, json={"text": "Is the mare still available?"}, headers=auth_headers(alice))
    assert response.status_code == status.HTTP_201_CREATED
    sent = response.json()
    assert sent["sender_id"] == alice
    assert sent["conversation_id"] == convo["id"]
    assert sent["is_read"] is False

    assert client.get("/api/chat/unread-count", headers=auth_headers(bob)).json() == {"unread_count": 1}

    response = client.get(url, headers=auth_headers(bob))
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["page"] == 1
    assert body["limit"] == 30
    assert [m["id"] for m in body["items"]] == [sent["id"]]

    assert client.get("/api/chat/unread-count", headers=auth_headers(bob)).json() == {"unread_count": 0}
    again = client.get(url, headers=auth_headers(bob)).json()["items"][0]
    assert again["is_read"] is True
    assert again["text"] == sent["text"]


def test_history_pagination_and_clamping(client, alice, bob):
    convo = _open_conversation(client, alice, bob)
    url = f"/api/chat/conversations/{convo['id']}/messages"
    client.post(url, json={"text": "first"}, headers=auth_headers(alice))
    client.post(url, json={"text": "second"}, headers=auth_headers(bob))

    page_two = client.get(url, params={"page": 2, "limit": 1}, headers=auth_headers(alice)).json()
    assert [m["text"] for m in page_two["items"]] == ["first"]

    clamped = client.get(url, params={"page": 0, "limit": 500}, headers=auth_headers(alice)).json()
    assert clamped["page"] == 1
    assert clamped["limit"] == 100
    assert [m["text"] for m in clamped["items"]] == ["first", "second"]


def test_non_participant_sees_not_found(client, alice, bob, carol):
    convo = _open_conversation(client, alice, bob)
    url = f"/api/chat/conversations/{convo['id']}/messages"

    response = client.get(url, headers=auth_headers(carol))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Conversation not found"

    response = client.post(url, json={"text": "hi"}, headers=auth_headers(carol))
    assert response.status_code == status.HTTP_404_NOT_FOUND

    missing = client.get("/api/chat/conversations/not-an-id/messages", headers=auth_headers(alice))
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_send_empty_message_is_bad_request(client, alice, bob):
    convo = _open_conversation(client, alice, bob)
    response = client.post(
        f"/api/chat/conversations/{convo['id']}/messages", json={"text": "   "}, headers=auth_headers(alice)
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_list_conversations_shows_snapshot(client, alice, bob, carol):
    with_bob = _open_conversation(client, alice, bob)
    with_carol = _open_conversation(client, alice, carol)
    client.post(f"/api/chat/conversations/{with_bob['id']}/messages", json={"text": "hello bob"}, headers=auth_headers(alice))

    items = client.get("/api/chat/conversations", headers=auth_headers(alice)).json()["items"]
    assert {c["id"] for c in items} == {with_bob["id"], with_carol["id"]}
    snapshot = next(c for c in items if c["id"] == with_bob["id"])["last_message"]
    assert snapshot["text"] == "hello bob"
    assert snapshot["sender_id"] == alice

    assert client.get("/api/chat/conversations", headers=auth_headers(carol)).json()["items"][0]["id"] == with_carol["id"]


def test_delete_own_message(client, alice, bob):
    convo = _open_conversation(client, alice, bob)
    url = f"/api/chat/conversations/{convo['id']}/messages"
    sent = client.post(url, json={"text": "typo"}, headers=auth_headers(alice)).json()

    forbidden = client.delete(f"{url}/{sent['id']}", headers=auth_headers(bob))
    assert forbidden.status_code == status.HTTP_404_NOT_FOUND

    response = client.delete(f"{url}/{sent['id']}", headers=auth_headers(alice))
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert client.get(url, headers=auth_headers(bob)).json()["items"] == []
