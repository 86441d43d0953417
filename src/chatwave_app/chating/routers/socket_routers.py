import asyncio
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from chatwave_app.core import config
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.get_current_user import get_ws_current_user
from chatwave_app.users.utils.populate_users import public_profile
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.realtime.presence import presence
from chatwave_app.chating.realtime.socket_handlers import SocketSession, handle_frame
from chatwave_app.chating.services import message_status, presence_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/socket", tags=["Socket"])


async def on_connect(session: SocketSession):
    await presence_service.mark_online(session.user.id)
    await manager.broadcast("userOnline", {
        "user_id": session.user_id,
        "user": public_profile(session.user),
    }, exclude=session.user_id)
    await manager.send_to_user(session.user_id, "onlineUsers", {"users": presence.online_users()})
    await message_status.deliver_pending(session.user.id)


async def on_disconnect(session: SocketSession):
    # a newer socket for the same user keeps them online
    if not manager.disconnect(session.user_id, session.connection_id):
        return
    await presence_service.mark_offline(session.user.id)
    await manager.broadcast("userOffline", {"user_id": session.user_id})


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, current_user: UserModel = Depends(get_ws_current_user)):
    user_id = str(current_user.id)
    connection_id = await manager.connect(user_id, websocket, public_profile(current_user))
    session = SocketSession(user=current_user, connection_id=connection_id)
    logger.info(f"Socket connected for user {user_id} ({connection_id})")

    # Heartbeat task
    async def heartbeat():
        try:
            while True:
                await asyncio.sleep(config.HEARTBEAT_SECONDS)
                await websocket.send_json({"type": "ping", "data": {}})
        except Exception as e:
            logger.debug(f"Heartbeat stopped for user {user_id}: {e}")

    heartbeat_task = asyncio.create_task(heartbeat())

    try:
        await on_connect(session)
        while True:
            data = await websocket.receive_text()
            await handle_frame(session, data)
    except WebSocketDisconnect:
        logger.info(f"Socket disconnected for user {user_id} ({connection_id})")
    except Exception as e:
        logger.error(f"WebSocket Loop Error for user {user_id}: {e}", exc_info=True)
    finally:
        heartbeat_task.cancel()
        await on_disconnect(session)
