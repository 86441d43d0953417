"""
Per-chat unread counters.

`chats.unread_count` maps a stringified user id to the number of messages that
user has not read yet. The hot path keeps it up to date with field-level
`$inc`/`$set` updates; `compute_unread_counts` derives the same numbers from the
messages collection and is what the repair job and the single-message read
path trust.
"""
import logging
from typing import Dict, Iterable, Tuple
from uuid import UUID
from chatwave_app.core.base.base import utc_now
from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.models.message_model import MessageModel

logger = logging.getLogger(__name__)

# a mapping, not null or a legacy [{user, count}] array ($type "object" matches those arrays too)
WELL_FORMED = {"unread_count": {"$type": "object"}, "unread_count.0": {"$exists": False}}


def _key(user_id) -> str:
    return f"unread_count.{user_id}"


async def unread_for_user(chat_id: UUID, user_id: UUID) -> int:
    return await MessageModel.find({
        "chat_id": chat_id,
        "sender": {"$ne": user_id},
        "read_by": {"$ne": user_id},
        "deleted_by": {"$ne": user_id},
        "is_deleted": False,
    }).count()


async def compute_unread_counts(chat: ChatModel) -> Dict[str, int]:
    return {str(member): await unread_for_user(chat.id, member) for member in chat.member_ids()}


async def _update_counters(chat: ChatModel, update: dict, after_rebuild: dict = None):
    result = await ChatModel.find_one({"_id": chat.id, **WELL_FORMED}).update(update)
    if result is not None and result.matched_count:
        return
    # array/null shaped counter: rebuild it from messages, then apply the update
    logger.warning(f"Chat {chat.id} had a malformed unread_count, rebuilding it")
    await ChatModel.find_one({"_id": chat.id}).update(
        {"$set": {"unread_count": await compute_unread_counts(chat)}}
    )
    await ChatModel.find_one({"_id": chat.id}).update(after_rebuild or update)


async def record_new_message(chat: ChatModel, message: MessageModel):
    """Bump every other member's counter and move the chat's last-message pointer."""
    others = [member for member in chat.member_ids() if member != message.sender]
    update = {
        "$set": {
            _key(message.sender): 0,
            "last_message": message.id,
            "last_message_text": message.preview(),
            "last_message_sender": message.sender,
            "last_message_time": message.created_at,
            "updated_at": utc_now(),
        }
    }
    # a rebuilt counter already includes this message
    rebuilt = {"$set": dict(update["$set"])}
    if others:
        update["$inc"] = {_key(member): 1 for member in others}
    await _update_counters(chat, update, after_rebuild=rebuilt)


async def reset_unread(chat: ChatModel, user_id: UUID):
    await _update_counters(chat, {"$set": {_key(user_id): 0}})


async def sync_unread_for_user(chat: ChatModel, user_id: UUID) -> int:
    count = await unread_for_user(chat.id, user_id)
    await _update_counters(chat, {"$set": {_key(user_id): count}})
    return count


async def drop_unread(chat: ChatModel, user_ids: Iterable[UUID]):
    keys = {_key(uid): "" for uid in user_ids}
    if keys:
        await _update_counters(chat, {"$unset": keys})


async def repair_chat_counters(chat: ChatModel, raw_unread_count=None, dry_run: bool = False) -> Tuple[bool, Dict[str, int]]:
    """
    Recompute a chat's counters from its messages and store them when they drifted.

    `raw_unread_count` is the value exactly as stored, before model coercion, so
    array/null shaped legacy counters are always rewritten.
    """
    expected = await compute_unread_counts(chat)
    stored_ok = isinstance(raw_unread_count, dict) and {
        str(k): v for k, v in raw_unread_count.items()
    } == expected
    if stored_ok:
        return False, expected
    if dry_run:
        return True, expected
    await ChatModel.find_one({"_id": chat.id}).update({"$set": {"unread_count": expected}})
    return True, expected
