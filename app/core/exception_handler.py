import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import LedgerError, StorageUnavailable

logger = logging.getLogger(__name__)

HTTP_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _failure(message: str, code: str, status_code: int, headers=None) -> JSONResponse:
    return JSONResponse(
        content={"ok": False, "error": message, "code": code},
        status_code=status_code,
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(LedgerError)
    async def ledger_exception_handler(request: Request, exc: LedgerError):
        if isinstance(exc, StorageUnavailable):
            logger.error("%s %s: %s", request.method, request.url.path, exc.message)
        else:
            logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message)
        return _failure(exc.message, exc.code, exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return _failure(
            str(exc.detail),
            HTTP_CODES.get(exc.status_code, f"HTTP_{exc.status_code}"),
            exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        messages = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
        return _failure("; ".join(messages) or "Invalid request", "VALIDATION_ERROR", 422)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _failure("Internal server error", "INTERNAL_ERROR", 500)
