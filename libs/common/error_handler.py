"""Exception handlers that turn typed application errors into JSON responses.

Usage:
    from libs.common.error_handler import add_exception_handlers

    app = FastAPI()
    add_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from libs.common.errors import AppError
from libs.common.logging import get_logger, get_request_id

logger = get_logger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    level = "error" if exc.http_status >= 500 else "warning"
    getattr(logger, level)(
        f"{exc.code}: {exc.message}",
        extra={"extra_fields": {"status_code": exc.http_status, "code": exc.code}},
    )
    content = exc.to_dict()
    request_id = get_request_id()
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(status_code=exc.http_status, content=content)


def add_exception_handlers(app: FastAPI) -> None:
    """Register handlers for every ``AppError`` subclass."""
    app.add_exception_handler(AppError, app_error_handler)
