from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.schemas.channel import ChannelCreate
from chatwave_app.chating.schemas.message import SendMessageRequest
from chatwave_app.chating.services import channel_service, chat_service, message_status, unread_counts
from chatwave_app.chating.maintenance import repair
from conftest import bson_id


async def _send(user, chat, text="hi"):
    return await chat_service.send_message(user, SendMessageRequest(chat_id=chat.id, content=text))


async def _raw_unread(chat):
    raw = await ChatModel.get_motor_collection().find_one({"_id": bson_id(chat.id)})
    return raw["unread_count"]


async def test_send_increments_only_the_other_participant(alice, bob):
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)

    await _send(alice, chat)
    await _send(alice, chat)

    await chat.fetch()
    assert chat.unread_for(bob.id) == 2
    assert chat.unread_for(alice.id) == 0
    assert chat.last_message_text == "hi"
    assert chat.last_message_sender == alice.id


async def test_read_then_reply_round_trip(alice, bob):
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)
    for text in ("a", "b", "c"):
        await _send(alice, chat, text)

    await message_status.mark_all_read(chat, bob.id)
    await chat.fetch()
    assert chat.unread_for(bob.id) == 0

    await _send(bob, chat, "reply")
    await chat.fetch()
    assert chat.unread_for(alice.id) == 1
    assert chat.unread_for(bob.id) == 0


async def test_single_read_recomputes_counter(alice, bob):
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)
    first = await _send(alice, chat, "first")
    await _send(alice, chat, "second")

    await message_status.mark_read(first, chat, bob.id)

    await chat.fetch()
    assert chat.unread_for(bob.id) == 1


async def test_channel_message_counts_for_every_other_member(alice, bob, carol):
    channel = await channel_service.create_channel(
        alice, ChannelCreate(name="general", member_ids=[bob.id, carol.id])
    )

    await _send(bob, channel, "hello all")

    await channel.fetch()
    assert channel.unread_for(alice.id) == 1
    assert channel.unread_for(carol.id) == 1
    assert channel.unread_for(bob.id) == 0


async def test_array_shaped_counter_heals_on_next_message(alice, bob):
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)
    await _send(alice, chat, "before")
    await ChatModel.get_motor_collection().update_one(
        {"_id": bson_id(chat.id)}, {"$set": {"unread_count": [{"user": str(bob.id), "count": 7}]}}
    )

    await _send(alice, chat, "after")

    stored = await _raw_unread(chat)
    assert isinstance(stored, dict)
    assert stored[str(bob.id)] == 2
    assert stored[str(alice.id)] == 0


async def test_repair_job_rewrites_drifted_and_malformed_counters(alice, bob):
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)
    await _send(alice, chat, "one")
    await _send(alice, chat, "two")
    await ChatModel.get_motor_collection().update_one({"_id": bson_id(chat.id)}, {"$set": {"unread_count": None}})

    checked, fixed = await repair.repair_unread_counts()

    assert (checked, fixed) == (1, 1)
    assert await _raw_unread(chat) == {str(alice.id): 0, str(bob.id): 2}

    # a second pass has nothing left to fix
    assert await repair.repair_unread_counts() == (1, 0)


async def test_compute_unread_counts_ignores_messages_deleted_for_the_reader(alice, bob):
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)
    hidden = await _send(alice, chat, "hidden")
    await _send(alice, chat, "visible")

    await chat_service.delete_message(hidden, chat, bob, delete_for_everyone=False)

    assert await unread_counts.compute_unread_counts(chat) == {str(alice.id): 0, str(bob.id): 1}
    await chat.fetch()
    assert chat.unread_for(bob.id) == 1
