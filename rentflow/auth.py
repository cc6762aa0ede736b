# rentflow/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional

import jwt  # PyJWT
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .models import AppUser, UserRole
from .timeutil import utcnow


@dataclass(frozen=True)
class Principal:
    user_id: int
    email: str
    role: str  # TENANT | LANDLORD | ADMIN

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def principal_for(user: AppUser) -> Principal:
    return Principal(user_id=int(user.id), email=str(user.email), role=str(user.role))


# -------------------------
# JWT helpers
# -------------------------
def create_access_token(*, user_id: int, role: str, minutes: int = 60 * 24) -> str:
    now = utcnow()
    payload: dict[str, Any] = {
        "sub": str(int(user_id)),
        "role": str(role),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=int(minutes))).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid token")


# -------------------------
# get_principal
# -------------------------
def get_principal(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Principal:
    """
    Auth modes supported (in priority order):
      1) Authorization: Bearer <token> (sub = user id)
      2) dev headers named by settings.dev_header_user_id / dev_header_user_email
         (ONLY if settings.auth_mode == "dev")
    """
    token = None
    if authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()

    if token:
        claims = decode_access_token(token)
        sub = str(claims.get("sub") or "")
        if not sub.isdigit():
            raise HTTPException(status_code=401, detail="Token missing sub")
        user = db.get(AppUser, int(sub))
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown user")
        return principal_for(user)

    if settings.auth_mode == "dev":
        x_user_id = request.headers.get(settings.dev_header_user_id)
        x_user_email = request.headers.get(settings.dev_header_user_email)
        user = None
        if x_user_id and str(x_user_id).strip().isdigit():
            user = db.get(AppUser, int(str(x_user_id).strip()))
        elif x_user_email:
            email = str(x_user_email).strip().lower()
            user = db.scalar(select(AppUser).where(AppUser.email == email))
        if user is None:
            raise HTTPException(status_code=401, detail="Missing or unknown dev user header")
        return principal_for(user)

    raise HTTPException(status_code=401, detail="Not authenticated")


def require_admin(p: Principal = Depends(get_principal)) -> Principal:
    if not p.is_admin:
        raise HTTPException(status_code=403, detail="Requires ADMIN role")
    return p
