import logging
from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, Request, WebSocket, WebSocketException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from chatwave_app.core import config
from chatwave_app.users.models.user_models import UserModel
from chatwave_app.users.utils.token_generate import decode_access_token

logger = logging.getLogger(__name__)

# Browsers send the httpOnly cookie; API clients may use a bearer header instead.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def parse_uuid(value, detail: str = "Invalid ID") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (ValueError, TypeError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


async def get_current_user(
    request: Request,
    bearer_token: Optional[str] = Depends(oauth2_scheme),
) -> UserModel:
    token = request.cookies.get(config.AUTH_COOKIE_NAME) or bearer_token
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return await verify_token(token)


async def verify_token(token: str) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id = UUID(payload.get("sub"))
    except (JWTError, ValueError, TypeError):
        raise credentials_exception

    user = await UserModel.get(user_id)
    if user is None:
        raise credentials_exception

    return user


async def get_ws_current_user(websocket: WebSocket) -> UserModel:
    """Authenticate a socket from the handshake cookie, or `?token=` for non-browser clients."""
    token = websocket.cookies.get(config.AUTH_COOKIE_NAME) or websocket.query_params.get("token")
    if not token:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Token missing")
    try:
        return await verify_token(token)
    except HTTPException as exc:
        logger.info(f"Rejected socket handshake: {exc.detail}")
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
