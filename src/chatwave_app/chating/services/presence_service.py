import asyncio
import logging
from typing import Dict, List
from uuid import UUID
from beanie.operators import In, NotIn
from chatwave_app.core import config
from chatwave_app.core.base.base import utc_now
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.realtime.presence import PresenceRegistry, presence

logger = logging.getLogger(__name__)


async def mark_online(user_id: UUID):
    await UserModel.find_one(UserModel.id == user_id).update({"$set": {"is_online": True}})


async def mark_offline(user_id: UUID):
    await UserModel.find_one(UserModel.id == user_id).update(
        {"$set": {"is_online": False, "last_seen": utc_now()}}
    )


async def reconcile_presence(registry: PresenceRegistry = presence) -> Dict[str, List[str]]:
    """
    Bring the stored online flags in line with the live connections.

    Users who chose to appear offline, or whose socket failed, count as offline.
    Returns the ids moved in each direction.
    """
    visible_ids = [UUID(uid) for uid in registry.visible_user_ids()]

    stale = await UserModel.find(UserModel.is_online == True, NotIn(UserModel.id, visible_ids)).to_list()
    if stale:
        await UserModel.find(In(UserModel.id, [u.id for u in stale])).update(
            {"$set": {"is_online": False, "last_seen": utc_now()}}
        )

    revived = []
    if visible_ids:
        revived = await UserModel.find(UserModel.is_online == False, In(UserModel.id, visible_ids)).to_list()
        if revived:
            await UserModel.find(In(UserModel.id, [u.id for u in revived])).update({"$set": {"is_online": True}})

    result = {
        "set_offline": [str(u.id) for u in stale],
        "set_online": [str(u.id) for u in revived],
    }
    if stale or revived:
        logger.info(f"Presence sweep: {len(stale)} set offline, {len(revived)} set online")
    return result


async def sweep_presence(registry: PresenceRegistry = presence) -> Dict[str, List[str]]:
    result = await reconcile_presence(registry)
    for user_id in result["set_offline"]:
        await manager.broadcast("userOffline", {"user_id": user_id}, exclude=user_id)
    for user_id in result["set_online"]:
        await manager.broadcast("userOnline", {"user_id": user_id}, exclude=user_id)
    return result


async def presence_sweep_loop(interval: int = None):
    interval = interval or config.PRESENCE_SWEEP_SECONDS
    while True:
        await asyncio.sleep(interval)
        try:
            await sweep_presence()
        except Exception as e:
            logger.error(f"Presence sweep failed: {e}", exc_info=True)
