from datetime import datetime, timezone


def log_audit_event(
    store,
    *,
    user_id: str | None,
    username: str | None,
    action: str,
    endpoint: str,
    module: str,
    payload: dict | None = None,
    ip_address: str | None
):
    with store.transaction() as tx:
        tx.insert_audit({
            "user_id": user_id,
            "username": username,
            "action": action,
            "endpoint": endpoint,
            "module": module,
            "payload": payload,
            "ip_address": ip_address,
            "created_at": datetime.now(timezone.utc),
        })


def list_audit_events(store, page: int, page_size: int):
    with store.transaction() as tx:
        return tx.list_audit((page - 1) * page_size, page_size)
