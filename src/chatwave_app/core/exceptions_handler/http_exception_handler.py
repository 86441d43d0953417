import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_body(message, code: int) -> dict:
    return {"status": "error", "message": message, "code": code}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every `HTTPException` raised by a router or service as `{status, message, code}`."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail, exc.status_code),
        headers=getattr(exc, "headers", None),
    )
