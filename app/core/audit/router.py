from fastapi import APIRouter, Depends, Query

from app.core.audit.service import list_audit_events
from app.core.config import settings
from app.core.security.permissions import Action, require_permission
from app.store.base import get_store

router = APIRouter(
    prefix="/audit-logs",
    tags=["Audit"]
)


@router.get("")
def list_audit_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, alias="pageSize", ge=1),
    user = Depends(require_permission(Action.VIEW_AUDIT)),
    store = Depends(get_store)
):
    page_size = min(page_size, settings.MAX_PAGE_SIZE)
    records, total = list_audit_events(store, page, page_size)
    return {
        "ok": True,
        "items": [
            {
                "userId": r["user_id"],
                "username": r["username"],
                "action": r["action"],
                "endpoint": r["endpoint"],
                "module": r["module"],
                "payload": r["payload"],
                "ipAddress": r["ip_address"],
                "createdAt": r["created_at"].isoformat(),
            }
            for r in records
        ],
        "total": total,
        "page": page,
        "pageSize": page_size,
    }
