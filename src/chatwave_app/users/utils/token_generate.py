from datetime import timedelta
from fastapi import HTTPException, Response, status
from jose import jwt
from chatwave_app.core import config
from chatwave_app.core.base.base import utc_now


def _secret_key() -> str:
    if not config.SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error. Please contact administrator.",
        )
    return config.SECRET_KEY


def create_access_token(data: dict, max_age_seconds: int = None) -> str:
    to_encode = data.copy()
    expire = utc_now() + timedelta(seconds=max_age_seconds or config.ACCESS_TOKEN_MAX_AGE_SECONDS)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, _secret_key(), algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Raises jose.JWTError on a bad signature or an expired token."""
    return jwt.decode(token, _secret_key(), algorithms=[config.ALGORITHM])


def set_auth_cookie(response: Response, token: str):
    response.set_cookie(
        key=config.AUTH_COOKIE_NAME,
        value=token,
        max_age=config.ACCESS_TOKEN_MAX_AGE_SECONDS,
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="none" if config.IS_PRODUCTION else "lax",
    )


def clear_auth_cookie(response: Response):
    response.delete_cookie(
        key=config.AUTH_COOKIE_NAME,
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite="none" if config.IS_PRODUCTION else "lax",
    )
