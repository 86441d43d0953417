import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from motor.motor_asyncio import AsyncIOMotorClient
from beanie import init_beanie
from chatwave_app.core import config
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.chating.models.chat_model import ChatModel
from chatwave_app.chating.models.message_model import MessageModel
from chatwave_app.notifications.models import NotificationModel
from chatwave_app.chating.realtime.connection_manager import manager
from chatwave_app.chating.services.presence_service import presence_sweep_loop

logger = logging.getLogger(__name__)


MODELS = [
    UserModel,
    ChatModel,
    MessageModel,
    NotificationModel,
]


async def init_db(client: AsyncIOMotorClient, database_name: str = None):
    await init_beanie(
        database=client[database_name or config.DATABASE_NAME],
        document_models=MODELS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    client = AsyncIOMotorClient(config.MONGODB_URL, uuidRepresentation="standard", tz_aware=True)
    await init_db(client)
    logger.info(f"Connected to MongoDB: {config.DATABASE_NAME}")

    await manager.ensure_redis()
    sweep_task = asyncio.create_task(presence_sweep_loop())

    yield

    sweep_task.cancel()
    await manager.close()
    client.close()
    logger.info("MongoDB connection closed.")
