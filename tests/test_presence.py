from chatwave_app.users.models.user_models import UserModel
from chatwave_app.chating.realtime.connection_manager import ConnectionManager
from chatwave_app.chating.realtime.presence import PresenceRegistry
from chatwave_app.chating.services.presence_service import reconcile_presence
from conftest import FakeWebSocket


def test_stale_connection_cannot_unregister_a_newer_one():
    registry = PresenceRegistry()
    old_ws, new_ws = FakeWebSocket(), FakeWebSocket()

    registry.register("u1", "old", old_ws)
    replaced = registry.register("u1", "new", new_ws)

    assert replaced.connection_id == "old"
    assert registry.unregister("u1", "old") is False
    assert registry.lookup("u1").websocket is new_ws
    assert registry.unregister("u1", "new") is True
    assert not registry.is_online("u1")


def test_rooms_follow_the_connection():
    registry = PresenceRegistry()
    registry.register("u1", "c1", FakeWebSocket())
    registry.register("u2", "c2", FakeWebSocket())

    registry.join_room("u1", "chat-1")
    registry.join_room("u2", "chat-1")
    registry.leave_room("u2", "chat-1")
    assert registry.room_members("chat-1") == {"u1"}

    registry.unregister("u1", "c1")
    assert registry.room_members("chat-1") == set()
    assert registry.join_room("ghost", "chat-1") is False


async def test_local_delivery_to_users_rooms_and_everyone():
    registry = PresenceRegistry()
    manager = ConnectionManager(registry, redis_url="")
    a, b = FakeWebSocket(), FakeWebSocket()
    await manager.connect("a", a)
    await manager.connect("b", b)
    registry.join_room("a", "room")
    registry.join_room("b", "room")

    await manager.send_to_user("a", "hello", {"n": 1})
    await manager.send_to_room("room", "roomEvent", {"n": 2}, exclude="a")
    await manager.broadcast("all", {"n": 3})

    assert a.accepted and b.accepted
    assert a.sent == [{"type": "hello", "data": {"n": 1}}, {"type": "all", "data": {"n": 3}}]
    assert b.sent == [{"type": "roomEvent", "data": {"n": 2}}, {"type": "all", "data": {"n": 3}}]


async def test_failed_send_marks_the_connection_closed():
    class BrokenWebSocket(FakeWebSocket):
        async def send_json(self, data):
            raise RuntimeError("socket closed")

    registry = PresenceRegistry()
    manager = ConnectionManager(registry, redis_url="")
    connection_id = await manager.connect("a", BrokenWebSocket())

    await manager.send_to_user("a", "hello")

    assert registry.lookup("a").closed is True
    assert registry.visible_user_ids() == []
    # still registered, so the disconnect path can run the offline transition
    assert manager.disconnect("a", connection_id) is True


async def test_reconcile_presence_fixes_stored_flags(alice, bob):
    registry = PresenceRegistry()
    registry.register(str(bob.id), "c1", FakeWebSocket())
    await UserModel.find_one(UserModel.id == alice.id).update({"$set": {"is_online": True}})

    result = await reconcile_presence(registry)

    assert result == {"set_offline": [str(alice.id)], "set_online": [str(bob.id)]}
    assert (await UserModel.get(alice.id)).is_online is False
    assert (await UserModel.get(bob.id)).is_online is True
