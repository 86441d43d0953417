import pytest
from fastapi import HTTPException
from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.schemas.channel import ChannelCreate, ChannelUpdate
from chatwave_app.chating.services import channel_service
from chatwave_app.chating.services.channel_policy import is_channel_admin
from conftest import auth_headers, connect


async def _channel(owner, *members, name="general", is_private=False):
    return await channel_service.create_channel(
        owner, ChannelCreate(name=name, member_ids=[m.id for m in members], is_private=is_private)
    )


async def test_creator_is_the_only_admin_and_a_member(client, alice, bob):
    response = await client.post(
        "/api/channels/create",
        json={"name": "general", "description": "Team chat", "member_ids": [str(bob.id)]},
        headers=auth_headers(alice),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "general"
    assert [admin["id"] for admin in body["admins"]] == [str(alice.id)]
    assert {member["id"] for member in body["members"]} == {str(alice.id), str(bob.id)}


async def test_create_rejects_blank_duplicate_and_unknown_members(client, alice, bob):
    headers = auth_headers(alice)
    await _channel(alice, bob, name="general")

    blank = await client.post("/api/channels/create", json={"name": "  "}, headers=headers)
    duplicate = await client.post("/api/channels/create", json={"name": "General"}, headers=headers)
    unknown = await client.post(
        "/api/channels/create",
        json={"name": "random", "member_ids": ["00000000-0000-0000-0000-000000000000"]},
        headers=headers,
    )

    assert blank.status_code == 400
    assert duplicate.status_code == 400
    assert unknown.status_code == 400
    assert unknown.json()["status"] == "error"


async def test_members_are_notified_when_added(alice, bob):
    bob_ws = connect(bob)

    await _channel(alice, bob)

    notifications = bob_ws.events("notification")
    assert notifications and notifications[0]["type"] == "CHANNEL"


async def test_only_admins_can_add_members(client, alice, bob, carol):
    channel = await _channel(alice, bob)

    response = await client.post(
        f"/api/channels/{channel.id}/members", json={"user_id": str(carol.id)}, headers=auth_headers(bob)
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Only admins can add members"

    response = await client.post(
        f"/api/channels/{channel.id}/members", json={"user_id": str(carol.id)}, headers=auth_headers(alice)
    )
    assert response.status_code == 200
    await channel.fetch()
    assert carol.id in channel.members

    again = await client.post(
        f"/api/channels/{channel.id}/members", json={"user_id": str(carol.id)}, headers=auth_headers(alice)
    )
    assert again.status_code == 400


async def test_cannot_remove_or_demote_the_only_admin(client, alice, bob):
    channel = await _channel(alice, bob)
    headers = auth_headers(alice)

    removed = await client.delete(f"/api/channels/{channel.id}/members/{alice.id}", headers=headers)
    demoted = await client.put(
        f"/api/channels/{channel.id}/admin", json={"user_id": str(alice.id), "is_admin": False}, headers=headers
    )

    assert removed.status_code == 400
    assert removed.json()["message"] == "Cannot remove the only admin"
    assert demoted.status_code == 400
    await channel.fetch()
    assert channel.admins == [alice.id]


async def test_admin_can_step_down_once_another_admin_exists(alice, bob):
    channel = await _channel(alice, bob)

    await channel_service.set_admin(channel, alice, bob.id, True)
    await channel_service.set_admin(channel, alice, alice.id, False)

    assert channel.admins == [bob.id]
    assert not is_channel_admin(channel, alice.id)
    with pytest.raises(HTTPException) as exc:
        await channel_service.update_channel(channel, alice, ChannelUpdate(name="renamed"))
    assert exc.value.status_code == 403


async def test_member_can_leave_and_loses_their_counter(alice, bob, carol):
    channel = await _channel(alice, bob, carol)

    await channel_service.remove_member(channel, bob, bob.id)

    stored = await ChatModel.get(channel.id)
    assert bob.id not in stored.members
    assert str(bob.id) not in stored.unread_count


async def test_non_admin_cannot_remove_someone_else(alice, bob, carol):
    channel = await _channel(alice, bob, carol)

    with pytest.raises(HTTPException) as exc:
        await channel_service.remove_member(channel, bob, carol.id)
    assert exc.value.status_code == 403


async def test_private_channels_are_listed_only_for_members(client, alice, bob, carol):
    await _channel(alice, bob, name="open")
    await _channel(alice, bob, name="secret", is_private=True)

    for_bob = await client.get("/api/channels/user-channels", headers=auth_headers(bob))
    for_carol = await client.get("/api/channels/user-channels", headers=auth_headers(carol))

    assert {c["name"] for c in for_bob.json()} == {"open", "secret"}
    assert {c["name"] for c in for_carol.json()} == {"open"}


async def test_members_endpoint_requires_membership(client, alice, bob, carol):
    channel = await _channel(alice, bob)

    ok = await client.get(f"/api/channels/{channel.id}/members", headers=auth_headers(bob))
    denied = await client.get(f"/api/channels/{channel.id}/members", headers=auth_headers(carol))

    assert ok.status_code == 200
    admins = [m for m in ok.json()["members"] if m["is_admin"]]
    assert [m["id"] for m in admins] == [str(alice.id)]
    assert denied.status_code == 403


async def test_common_channels(client, alice, bob, carol):
    await _channel(alice, bob, name="pair")
    await _channel(alice, carol, name="other")

    response = await client.get(f"/api/channels/common-channels/{alice.id}/{bob.id}", headers=auth_headers(alice))

    assert response.status_code == 200
    assert [c["name"] for c in response.json()] == ["pair"]
