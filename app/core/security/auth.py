from datetime import datetime, timedelta, timezone
from jose import jwt
from app.core.config import settings

# ===============================
# TOKENS
# ===============================
# Principals are issued by an external identity provider. The token carries
# the immutable role and home base of the caller:
#   sub   -> principal id
#   name  -> display name, snapshotted on every record they create
#   role  -> admin | base_commander | logistics_officer
#   base  -> home base code (optional for admins)


def create_access_token(
    user_id: str,
    role: str,
    base_code: str | None = None,
    name: str | None = None,
    expires_delta: timedelta | None = None
):
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    payload = {
        "sub": user_id,
        "name": name or user_id,
        "role": role,
        "base": base_code,
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM],
    )
