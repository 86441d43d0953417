import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from chatwave_app.core import config

logger = logging.getLogger(__name__)


async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)

    show_details = request.app.debug or not config.IS_PRODUCTION
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "fail",
            "message": "Something went wrong on our side. Please try again later.",
            "error_details": str(exc) if show_details else None,
        },
    )
