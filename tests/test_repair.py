from datetime import timedelta
from uuid import uuid4
from chatwave_app.core.base.base import utc_now
from chatwave_app.chating.models.chat_model import ChatModel, ChatType
from chatwave_app.chating.models.message_model import MessageModel
from chatwave_app.chating.maintenance import repair
from conftest import auth_headers, bson_id


def _legacy_message(sender, **refs) -> dict:
    return {
        "_id": bson_id(uuid4()),
        "sender": bson_id(sender),
        "message_type": "text",
        "content": "legacy",
        "status": "sent",
        "delivered_to": [],
        "read_by": [],
        "read_receipts": [],
        "edit_history": [],
        "is_deleted": False,
        "deleted_by": [],
        "created_at": utc_now(),
        "updated_at": utc_now(),
        **refs,
    }


async def test_legacy_chat_references_fold_into_chat_id(alice, bob):
    chat = ChatModel(type=ChatType.DIRECT, participants=[alice.id, bob.id])
    await chat.insert()
    collection = MessageModel.get_motor_collection()
    await collection.insert_many([
        _legacy_message(alice.id, chat=str(chat.id)),
        _legacy_message(bob.id, chatId=bson_id(chat.id)),
        _legacy_message(alice.id, recipient=bson_id(bob.id)),
    ])

    stats = await repair.normalize_legacy_message_refs()

    assert stats == {"checked": 3, "migrated": 3, "unresolved": 0}
    assert await collection.count_documents({"chat_id": bson_id(chat.id)}) == 3
    assert await collection.count_documents({"$or": [{f: {"$exists": True}} for f in repair.LEGACY_FIELDS]}) == 0


async def test_dry_run_changes_nothing(alice, bob):
    collection = MessageModel.get_motor_collection()
    await collection.insert_one(_legacy_message(alice.id, recipient=bson_id(bob.id)))

    stats = await repair.normalize_legacy_message_refs(dry_run=True)

    assert stats["checked"] == 1
    assert await collection.count_documents({"recipient": {"$exists": True}}) == 1
    assert await ChatModel.find_all().count() == 0


async def test_cleanup_removes_empty_and_duplicate_direct_chats(client, alice, bob):
    older = ChatModel(type=ChatType.DIRECT, participants=[alice.id, bob.id], updated_at=utc_now() - timedelta(days=1))
    newer = ChatModel(type=ChatType.DIRECT, participants=[bob.id, alice.id])
    empty = ChatModel(type=ChatType.DIRECT, participants=[])
    for chat in (older, newer, empty):
        await chat.insert()
    await MessageModel(chat_id=older.id, sender=alice.id, content="kept").insert()

    response = await client.delete("/api/messages/chats/cleanup", headers=auth_headers(alice))

    assert response.json() == {"message": "Cleanup completed", "deleted_empty": 1, "deleted_duplicates": 1}
    remaining = await ChatModel.find_all().to_list()
    assert [c.id for c in remaining] == [newer.id]
    assert remaining[0].last_message_text == "kept"
    assert remaining[0].unread_for(bob.id) == 1
    assert await MessageModel.find({"chat_id": newer.id}).count() == 1


async def test_fix_unread_counts_endpoint(client, alice, bob):
    chat = ChatModel(type=ChatType.DIRECT, participants=[alice.id, bob.id])
    await chat.insert()
    await MessageModel(chat_id=chat.id, sender=alice.id, content="unseen").insert()
    await ChatModel.get_motor_collection().update_one(
        {"_id": bson_id(chat.id)}, {"$set": {"unread_count": [{"user": str(bob.id), "count": 5}]}}
    )

    response = await client.post("/api/messages/chats/fix-unread-counts", headers=auth_headers(bob))

    assert response.json() == {"message": "Unread counts repaired", "chats_checked": 1, "chats_fixed": 1}
    raw = await ChatModel.get_motor_collection().find_one({"_id": bson_id(chat.id)})
    assert raw["unread_count"] == {str(alice.id): 0, str(bob.id): 1}
