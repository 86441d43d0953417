import json
import uuid
import asyncio
import logging
from typing import Iterable, Optional
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
import redis.asyncio as redis
from redis.exceptions import RedisError
from chatwave_app.core import config
from chatwave_app.chating.realtime.presence import PresenceRegistry, presence

logger = logging.getLogger(__name__)

PUBSUB_CHANNEL = "chat_updates"


# WebSocket Connection Manager with Redis Pub/Sub
class ConnectionManager:
    """
    Delivers `{"type": event, "data": payload}` frames to users, rooms or everyone.

    With Redis reachable every frame goes through the `chat_updates` channel so
    each API process delivers it to its own sockets; otherwise delivery is local.
    """

    def __init__(self, registry: PresenceRegistry, redis_url: Optional[str] = None):
        self.registry = registry
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None
        self.pubsub_task: Optional[asyncio.Task] = None

    async def ensure_redis(self):
        if self.redis or not self.redis_url:
            return
        try:
            self.redis = redis.from_url(self.redis_url, decode_responses=True)
            await self.redis.ping()
            self.pubsub_task = asyncio.create_task(self._listen_to_redis())
            logger.info("Connected to Redis for chat pub/sub")
        except (RedisError, OSError) as e:
            logger.warning(f"Failed to connect to Redis: {e}. Falling back to local-only delivery.")
            self.redis = None

    async def _listen_to_redis(self):
        ps = self.redis.pubsub()
        await ps.subscribe(PUBSUB_CHANNEL)
        try:
            async for message in ps.listen():
                if message["type"] != "message":
                    continue
                envelope = json.loads(message["data"])
                await self._deliver_local(envelope["target"], envelope["frame"])
        except RedisError as e:
            logger.error(f"Redis pub/sub error: {e}")
            self.redis = None
        finally:
            await ps.unsubscribe(PUBSUB_CHANNEL)

    async def close(self):
        if self.pubsub_task:
            self.pubsub_task.cancel()
            self.pubsub_task = None
        if self.redis:
            await self.redis.aclose()
            self.redis = None

    async def connect(self, user_id: str, websocket: WebSocket, user: dict = None) -> str:
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.registry.register(user_id, connection_id, websocket, user)
        await self.ensure_redis()
        return connection_id

    def disconnect(self, user_id: str, connection_id: str) -> bool:
        return self.registry.unregister(user_id, connection_id)

    async def send_to_user(self, user_id: str, event: str, data: dict = None):
        await self._dispatch({"kind": "users", "ids": [str(user_id)]}, event, data)

    async def send_to_users(self, user_ids: Iterable, event: str, data: dict = None, exclude: str = None):
        ids = [str(uid) for uid in user_ids if str(uid) != exclude]
        if ids:
            await self._dispatch({"kind": "users", "ids": ids}, event, data)

    async def send_to_room(self, room: str, event: str, data: dict = None, exclude: str = None):
        await self._dispatch({"kind": "room", "room": str(room), "exclude": exclude}, event, data)

    async def broadcast(self, event: str, data: dict = None, exclude: str = None):
        await self._dispatch({"kind": "all", "exclude": exclude}, event, data)

    async def _dispatch(self, target: dict, event: str, data: dict = None):
        frame = {"type": event, "data": jsonable_encoder(data or {})}
        if self.redis:
            try:
                await self.redis.publish(PUBSUB_CHANNEL, json.dumps({"target": target, "frame": frame}))
                return
            except RedisError as e:
                logger.error(f"Redis publish failed, delivering locally: {e}")
        await self._deliver_local(target, frame)

    async def _deliver_local(self, target: dict, frame: dict):
        kind = target.get("kind")
        if kind == "users":
            recipients = target.get("ids", [])
        elif kind == "room":
            recipients = self.registry.room_members(target["room"])
        else:
            recipients = self.registry.online_user_ids()

        exclude = target.get("exclude")
        for user_id in list(recipients):
            if user_id != exclude:
                await self._send(user_id, frame)

    async def _send(self, user_id: str, frame: dict):
        conn = self.registry.lookup(user_id)
        if conn is None or conn.closed:
            return
        try:
            await conn.websocket.send_json(frame)
        except Exception as e:
            # closed sockets raise RuntimeError or WebSocketDisconnect depending on state;
            # the socket loop unregisters and marks the user offline
            logger.error(f"Send to {user_id} failed, marking connection {conn.connection_id} closed: {e}")
            conn.closed = True


manager = ConnectionManager(presence, config.REDIS_URL)
