from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from core.config import get_settings
from core.roles import ROLE_PRECEDENCE, get_primary_role, has_permission

bearer_scheme = HTTPBearer(auto_error=False)


class TokenData(BaseModel):
    user_id: str
    roles: list[str] = Field(default_factory=lambda: ["client"])

    @property
    def primary_role(self) -> str:
        return get_primary_role(self.roles)


def create_access_token(data: dict[str, Any], expires_minutes: int = 60) -> str:
    """Issue a signed token; the platform auth provider does this in production."""
    settings = get_settings()
    payload = dict(data)
    payload["exp"] = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _roles_from_claims(claims: dict[str, Any]) -> list[str]:
    raw = claims.get("roles")
    if raw is None:
        raw = [claims["role"]] if claims.get("role") else []
    roles = [str(r).lower() for r in raw if str(r).lower() in ROLE_PRECEDENCE]
    return roles or ["client"]


def get_current_user(token: str) -> TokenData:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": "INVALID_TOKEN"}) from exc
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": "INVALID_TOKEN"})
    return TokenData(user_id=str(user_id), roles=_roles_from_claims(claims))


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenData:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"code": "AUTH_REQUIRED"})
    return get_current_user(credentials.credentials)


def require_permission(permission: str) -> Callable[[TokenData], TokenData]:
    def _dependency(principal: TokenData = Depends(get_current_principal)) -> TokenData:
        if not has_permission(principal.roles, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN_PERMISSION", "permission": permission, "roles": principal.roles},
            )
        return principal

    return _dependency
