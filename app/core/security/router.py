from fastapi import APIRouter, Depends

from app.core.security.dependencies import get_current_user
from app.core.security.permissions import allowed_actions

router = APIRouter(
    tags=["Auth"]
)


@router.get("/me")
def me(user = Depends(get_current_user)):
    """
    The caller as seen by the server, plus what the authorization gate lets
    them do on their own base. Clients render from this instead of
    re-deriving role rules.
    """
    return {
        "ok": True,
        "user": {
            "id": user["id"],
            "name": user["username"],
            "role": user["role"],
            "baseCode": user["base_code"],
        },
        "permissions": allowed_actions(user),
    }
