"""
Data repair jobs for the chat collections.

All of them are idempotent and safe to run against a live database. They back
the `fix-unread-counts` and `chats/cleanup` endpoints and `scripts/repair_chats.py`.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID
from bson import Binary
from bson.binary import UUID_SUBTYPE
from chatwave_app.chating.models.chat_model import ChatModel, ChatType
from chatwave_app.chating.models.message_model import MessageModel
from chatwave_app.chating.services import chat_service, unread_counts

logger = logging.getLogger(__name__)

LEGACY_CHAT_FIELDS = ("chat", "chatId")
LEGACY_FIELDS = LEGACY_CHAT_FIELDS + ("recipient",)


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    if isinstance(value, Binary):
        return value.as_uuid() if value.subtype == UUID_SUBTYPE else None
    if isinstance(value, dict):
        # DBRef-like {"$id": ...} leftovers
        return _as_uuid(value.get("$id") or value.get("id"))
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        return None


async def _direct_chat_for(sender: UUID, recipient: UUID, dry_run: bool) -> Optional[UUID]:
    chat = await ChatModel.find_one({
        "type": ChatType.DIRECT.value,
        "participants": {"$all": [sender, recipient], "$size": 2},
    })
    if chat:
        return chat.id
    if dry_run:
        return None
    chat = ChatModel(
        type=ChatType.DIRECT,
        participants=[sender, recipient],
        unread_count={str(sender): 0, str(recipient): 0},
    )
    await chat.insert()
    logger.info(f"Created direct chat {chat.id} for legacy messages between {sender} and {recipient}")
    return chat.id


async def normalize_chat_types(dry_run: bool = False) -> int:
    """Chats stored before `type` existed are direct chats."""
    collection = ChatModel.get_motor_collection()
    query = {"type": {"$exists": False}, "participants": {"$exists": True, "$ne": []}}
    if dry_run:
        return await collection.count_documents(query)
    result = await collection.update_many(query, {"$set": {"type": ChatType.DIRECT.value}})
    return result.modified_count


async def normalize_legacy_message_refs(dry_run: bool = False) -> Dict[str, int]:
    """Fold `chat`, `chatId` and `recipient` into the canonical `chat_id`."""
    collection = MessageModel.get_motor_collection()
    query = {"$or": [{"chat_id": {"$exists": False}}] + [{field: {"$exists": True}} for field in LEGACY_FIELDS]}

    stats = {"checked": 0, "migrated": 0, "unresolved": 0}
    for raw in await collection.find(query).to_list(None):
        stats["checked"] += 1
        chat_id = _as_uuid(raw.get("chat_id"))
        for field in LEGACY_CHAT_FIELDS:
            chat_id = chat_id or _as_uuid(raw.get(field))

        if chat_id is None and raw.get("recipient") is not None:
            sender, recipient = _as_uuid(raw.get("sender")), _as_uuid(raw.get("recipient"))
            if sender and recipient:
                chat_id = await _direct_chat_for(sender, recipient, dry_run)

        if chat_id is None:
            stats["unresolved"] += 1
            logger.warning(f"Message {raw['_id']} has no resolvable chat reference")
            continue

        stats["migrated"] += 1
        if not dry_run:
            await collection.update_one(
                {"_id": raw["_id"]},
                {"$set": {"chat_id": Binary.from_uuid(chat_id)}, "$unset": {field: "" for field in LEGACY_FIELDS}},
            )

    logger.info(f"Legacy message refs: {stats}")
    return stats


async def repair_unread_counts(chat_ids: Optional[Iterable[UUID]] = None, dry_run: bool = False) -> Tuple[int, int]:
    """Recompute every (or the given) chat's counters from messages. Returns (checked, fixed)."""
    collection = ChatModel.get_motor_collection()
    query = {}
    if chat_ids is not None:
        query = {"_id": {"$in": [Binary.from_uuid(chat_id) for chat_id in chat_ids]}}

    checked = fixed = 0
    for raw in await collection.find(query, {"unread_count": 1}).to_list(None):
        chat = await ChatModel.get(_as_uuid(raw["_id"]))
        if chat is None:
            continue
        checked += 1
        changed, expected = await unread_counts.repair_chat_counters(chat, raw.get("unread_count"), dry_run=dry_run)
        if changed:
            fixed += 1
            logger.info(f"Chat {chat.id}: unread_count {raw.get('unread_count')!r} -> {expected}")

    logger.info(f"Unread count repair: checked {checked} chats, fixed {fixed}")
    return checked, fixed


async def cleanup_chats(dry_run: bool = False) -> Tuple[int, int]:
    """
    Delete chats nobody belongs to and collapse duplicate direct chats.

    For duplicates the most recently updated chat is kept and the other chats'
    messages are moved into it. Returns (deleted_empty, deleted_duplicates).
    """
    empty_query = {"$or": [
        {"type": ChatType.DIRECT.value, "participants": {"$size": 0}},
        {"type": ChatType.CHANNEL.value, "members": {"$size": 0}},
    ]}
    empty = await ChatModel.find(empty_query).to_list()
    empty_ids = [chat.id for chat in empty]
    if empty_ids and not dry_run:
        await MessageModel.find({"chat_id": {"$in": empty_ids}}).delete()
        await ChatModel.find({"_id": {"$in": empty_ids}}).delete()

    direct = await ChatModel.find({"type": ChatType.DIRECT.value}).sort(-ChatModel.updated_at).to_list()
    keep: Dict[frozenset, ChatModel] = {}
    duplicates: List[Tuple[ChatModel, ChatModel]] = []
    for chat in direct:
        if len(set(chat.participants)) != 2:
            continue
        key = frozenset(chat.participants)
        if key in keep:
            duplicates.append((chat, keep[key]))
        else:
            keep[key] = chat

    if not dry_run:
        survivors = {}
        for duplicate, survivor in duplicates:
            await MessageModel.find({"chat_id": duplicate.id}).update({"$set": {"chat_id": survivor.id}})
            await duplicate.delete()
            survivors[survivor.id] = survivor
        for survivor in survivors.values():
            await chat_service.refresh_last_message(survivor)
        if survivors:
            await repair_unread_counts(list(survivors))

    logger.info(f"Chat cleanup: {len(empty_ids)} empty chats, {len(duplicates)} duplicate direct chats")
    return len(empty_ids), len(duplicates)


async def run_all(dry_run: bool = False) -> dict:
    report = {
        "chat_types": await normalize_chat_types(dry_run),
        "messages": await normalize_legacy_message_refs(dry_run),
    }
    report["deleted_empty"], report["deleted_duplicates"] = await cleanup_chats(dry_run)
    report["chats_checked"], report["chats_fixed"] = await repair_unread_counts(dry_run=dry_run)
    return report
