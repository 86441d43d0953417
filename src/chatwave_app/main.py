import os
import logging
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from chatwave_app.core import config
from chatwave_app.db import lifespan
from chatwave_app.core.exceptions_handler.http_exception_handler import http_exception_handler
from chatwave_app.core.exceptions_handler.global_exception_handler import global_exception_handler
from chatwave_app.users.routers.auth_routers import router as auth_router
from chatwave_app.users.routers.user_routers import user_router
from chatwave_app.chating.routers.message_routers import router as message_router
from chatwave_app.chating.routers.channel_routers import router as channel_router
from chatwave_app.chating.routers.socket_routers import router as socket_router
from chatwave_app.notifications.routers import router as notification_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Chatwave API",
    description="Real-time chat with direct messages and channels",
    version="1.0.0",
    lifespan=lifespan
)

if not os.path.exists(config.UPLOAD_DIR):
    os.makedirs(config.UPLOAD_DIR)

app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"status": "ok"}


app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)


app.include_router(auth_router, prefix="/api")
app.include_router(user_router, prefix="/api")
app.include_router(message_router, prefix="/api")
app.include_router(channel_router, prefix="/api")
app.include_router(socket_router, prefix="/api")
app.include_router(notification_router, prefix="/api")
