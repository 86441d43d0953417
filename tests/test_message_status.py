from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.models.message_model import MessageModel, MessageStatus
from chatwave_app.chating.schemas.message import SendMessageRequest
from chatwave_app.chating.services import chat_service, message_status
from conftest import connect


async def _direct_chat(alice, bob) -> ChatModel:
    chat, _ = await chat_service.get_or_create_direct_chat(alice, bob.id)
    return chat


async def _send(user, chat, text="hello") -> MessageModel:
    return await chat_service.send_message(user, SendMessageRequest(chat_id=chat.id, content=text))


def test_advance_status_never_moves_backwards():
    assert message_status.advance_status(MessageStatus.SENT, MessageStatus.DELIVERED) == MessageStatus.DELIVERED
    assert message_status.advance_status(MessageStatus.READ, MessageStatus.DELIVERED) == MessageStatus.READ
    assert message_status.advance_status(MessageStatus.DELIVERED, MessageStatus.SENT) == MessageStatus.DELIVERED


async def test_new_message_starts_as_sent(alice, bob):
    chat = await _direct_chat(alice, bob)
    message = await _send(alice, chat)

    stored = await MessageModel.get(message.id)
    assert stored.status == MessageStatus.SENT
    assert stored.delivered_to == []
    assert stored.read_by == []


async def test_delivered_after_read_keeps_read_status(alice, bob):
    chat = await _direct_chat(alice, bob)
    message = await _send(alice, chat)

    await message_status.mark_read(message, chat, bob.id)
    await message_status.mark_delivered(message, bob.id)

    stored = await MessageModel.get(message.id)
    assert stored.status == MessageStatus.READ
    assert bob.id in stored.delivered_to
    assert bob.id in stored.read_by


async def test_sender_cannot_deliver_or_read_own_message(alice, bob):
    chat = await _direct_chat(alice, bob)
    message = await _send(alice, chat)

    await message_status.mark_delivered(message, alice.id)
    await message_status.mark_read(message, chat, alice.id)

    stored = await MessageModel.get(message.id)
    assert stored.status == MessageStatus.SENT
    assert stored.delivered_to == []
    assert stored.read_by == []
    assert stored.read_receipts == []


async def test_repeated_reads_record_a_single_receipt(alice, bob):
    chat = await _direct_chat(alice, bob)
    message = await _send(alice, chat)

    await message_status.mark_read(message, chat, bob.id)
    first_read_at = (await MessageModel.get(message.id)).read_receipts[0].read_at
    await message_status.mark_read(message, chat, bob.id)
    await message_status.mark_messages_read(chat, [message.id], bob.id)
    await message_status.mark_all_read(chat, bob.id)

    stored = await MessageModel.get(message.id)
    assert stored.read_by == [bob.id]
    assert len(stored.read_receipts) == 1
    assert stored.read_receipts[0].user == bob.id
    assert stored.read_receipts[0].read_at == first_read_at


async def test_mark_all_read_leaves_nothing_unread(alice, bob):
    chat = await _direct_chat(alice, bob)
    for text in ("one", "two", "three"):
        await _send(alice, chat, text)
    await _send(bob, chat, "mine")

    await message_status.mark_all_read(chat, bob.id)

    await chat.fetch()
    assert chat.unread_for(bob.id) == 0
    unread = await MessageModel.find(
        {"chat_id": chat.id, "sender": {"$ne": bob.id}, "read_by": {"$ne": bob.id}}
    ).count()
    assert unread == 0


async def test_deliver_pending_marks_only_messages_for_the_user(alice, bob):
    chat = await _direct_chat(alice, bob)
    to_bob = await _send(alice, chat, "for bob")
    from_bob = await _send(bob, chat, "from bob")

    delivered = await message_status.deliver_pending(bob.id)

    assert [m.id for m in delivered] == [to_bob.id]
    assert (await MessageModel.get(to_bob.id)).status == MessageStatus.DELIVERED
    assert (await MessageModel.get(from_bob.id)).status == MessageStatus.SENT


async def test_status_change_is_pushed_to_the_sender(alice, bob):
    chat = await _direct_chat(alice, bob)
    message = await _send(alice, chat)
    alice_ws = connect(alice)

    await message_status.mark_read(message, chat, bob.id)

    updates = alice_ws.events("messageStatusUpdate")
    assert updates[-1]["message_id"] == str(message.id)
    assert updates[-1]["status"] == "read"
    assert updates[-1]["read_by"] == [str(bob.id)]
