from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.core.security.auth import decode_access_token

# Tokens are issued by an external identity provider, there is no login route
bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)
):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    try:
        payload = decode_access_token(credentials.credentials)

        user_id: str = payload.get("sub")
        role: str = payload.get("role")

        if not user_id or not role:
            raise credentials_exception

    except JWTError:
        raise credentials_exception

    base_code = payload.get("base")

    user = {
        "id": user_id,
        "username": payload.get("name") or user_id,
        "role": role,
        "base_code": base_code.strip().upper() if base_code else None,
    }

    # The audit middleware reads the principal from here
    request.state.user = user

    return user
