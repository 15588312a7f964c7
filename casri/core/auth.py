# casri/core/auth.py

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from casri.database import get_db
from casri.models.users import User
from casri.core.constants import STAFF_ROLES, UserRole
from casri.core.jwt import decode_access_token
from casri.core.oauth2 import ACCESS_COOKIE, oauth2_scheme


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
):
    # Authorization header first, then the cookie set at login
    token = token or request.cookies.get(ACCESS_COOKIE)

    if not token:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(token)

    if payload is None:
        raise _unauthorized("Invalid or expired token")

    user_id = payload.get("sub")

    if user_id is None:
        raise _unauthorized("Invalid token payload")

    user = db.query(User).filter(User.id == int(user_id)).first()

    if user is None:
        raise _unauthorized("User not found")

    return user


def get_staff_user(
    current_user: User = Depends(get_current_user),
):
    if current_user.role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff privileges required",
        )
    return current_user


def get_admin_user(
    current_user: User = Depends(get_current_user),
):
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user
