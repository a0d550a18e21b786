import logging

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
from app.core.audit.service import log_audit_event

logger = logging.getLogger(__name__)


class AuditMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            user = getattr(request.state, "user", None)

            # The store write may block (psycopg2), keep it off the event loop
            await run_in_threadpool(self._audit, request, user, response.status_code)

        return response

    def _audit(self, request: Request, user, status_code: int):
        try:
            log_audit_event(
                request.app.state.store,
                user_id=user["id"] if user else None,
                username=user["username"] if user else None,
                action=request.method,
                endpoint=request.url.path,
                module=request.url.path.split("/")[1],
                payload={"status": status_code},
                ip_address=request.client.host if request.client else None
            )
        except Exception:
            # A broken audit sink must not turn a completed operation into an error
            logger.exception("Audit event could not be recorded for %s %s", request.method, request.url.path)
