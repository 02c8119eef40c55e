from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings


bearer_scheme = HTTPBearer(auto_error=False)

MANAGER_ROLES = ("club_manager", "team_manager", "coach", "admin")


@dataclass(frozen=True)
class AuthPrincipal:
    user_id: int
    username: str
    role: str
    club_id: int
    exp: int


def issue_access_token(
    *,
    user_id: int,
    username: str,
    role: str,
    club_id: int,
    expires_in_seconds: Optional[int] = None,
) -> str:
    settings = get_settings()
    if expires_in_seconds is None:
        expires_in_seconds = settings.jwt_expire_minutes * 60
    payload = {
        "sub": str(user_id),
        "username": str(username),
        "role": str(role),
        "club_id": int(club_id),
        "exp": int(time.time()) + int(expires_in_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AuthPrincipal:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as exc:
        raise HTTPException(status_code=401, detail={"code": "TOKEN_EXPIRED"}) from exc
    except JWTError as exc:
        raise HTTPException(status_code=401, detail={"code": "INVALID_TOKEN"}) from exc

    try:
        return AuthPrincipal(
            user_id=int(payload["sub"]),
            username=str(payload["username"]),
            role=str(payload["role"]),
            club_id=int(payload["club_id"]),
            exp=int(payload["exp"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail={"code": "INVALID_TOKEN"}) from exc


def get_current_principal(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AuthPrincipal:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail={"code": "AUTH_REQUIRED"})
    return decode_access_token(credentials.credentials)


def require_roles(*allowed_roles: str) -> Callable[[AuthPrincipal], AuthPrincipal]:
    allowed = {r.lower() for r in allowed_roles}

    def _dependency(principal: AuthPrincipal = Depends(get_current_principal)) -> AuthPrincipal:
        role = principal.role.lower()
        if role != "admin" and role not in allowed:
            raise HTTPException(
                status_code=403,
                detail={"code": "FORBIDDEN_ROLE", "required_roles": sorted(allowed), "role": principal.role},
            )
        return principal

    return _dependency


require_manager = require_roles(*MANAGER_ROLES)
