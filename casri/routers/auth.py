import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from casri.database import get_db
from casri.models.users import User
from casri.schemas.common import MessageResponse
from casri.schemas.user import AuthResponse, RoleUpdate, UserCreate, UserLogin, UserResponse
from casri.core.auth import get_admin_user, get_current_user
from casri.core.constants import UserRole
from casri.core.hashing import hash_password, verify_password
from casri.core.jwt import create_access_token, create_refresh_token, decode_refresh_token
from casri.core.oauth2 import ACCESS_COOKIE, REFRESH_COOKIE
from casri.core.rate_limiter import limiter
from casri.core.config import settings

logger = logging.getLogger("casri")

router = APIRouter(prefix="/auth", tags=["Authentication"])

COMMON_PASSWORDS = {
    "password",
    "password123",
    "12345678",
    "qwerty123",
    "admin123",
}


def _issue_tokens(response: Response, user: User) -> dict:
    claims = {"sub": str(user.id), "role": user.role}

    access_token = create_access_token(data=claims)
    refresh_token = create_refresh_token(data=claims)

    cookie_options = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": "strict",
    }
    response.set_cookie(
        ACCESS_COOKIE,
        access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **cookie_options,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        **cookie_options,
    )

    return {"access_token": access_token, "refresh_token": refresh_token}


# ---------------- SIGNUP ----------------
@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("3/minute")
def signup(request: Request, response: Response, user_data: UserCreate, db: Session = Depends(get_db)):
    raw_password = user_data.password.lower()

    if raw_password in COMMON_PASSWORDS:
        raise HTTPException(
            status_code=400,
            detail="Password is too common. Please choose a stronger password.",
        )

    if user_data.password.isdigit():
        raise HTTPException(
            status_code=400,
            detail="Password cannot be numbers only.",
        )

    email = user_data.email.lower()

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=409, detail="User already exists")

    # The first account owns the shop; everyone else starts as USER until promoted
    role = UserRole.ADMIN if db.query(User.id).first() is None else UserRole.USER

    try:
        user = User(
            username=user_data.username.strip(),
            email=email,
            password_hash=hash_password(user_data.password),
            role=role.value,
        )
        db.add(user)
        db.commit()

    except SQLAlchemyError:
        db.rollback()
        logger.error("Signup failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Unable to create account")

    db.refresh(user)

    logger.info(f"User {user.id} signed up as {user.role}")

    return {
        "message": "User created successfully",
        "user": user,
        **_issue_tokens(response, user),
    }


# ---------------- LOGIN ----------------
@router.post("/login", response_model=AuthResponse)
@limiter.limit("5/minute")
def login(
    request: Request,
    response: Response,
    credentials: UserLogin,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.email == credentials.email.lower()).first()

    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return {
        "message": "Logged in successfully",
        "user": user,
        **_issue_tokens(response, user),
    }


# ---------------- REFRESH ----------------
@router.post("/refresh", response_model=AuthResponse)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    token = request.cookies.get(REFRESH_COOKIE)

    if not token:
        raise HTTPException(status_code=401, detail="Refresh token missing")

    payload = decode_refresh_token(token)

    if payload is None or payload.get("sub") is None:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    user = db.query(User).filter(User.id == int(payload["sub"])).first()

    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    return {
        "message": "Token refreshed",
        "user": user,
        **_issue_tokens(response, user),
    }


# ---------------- LOGOUT ----------------
@router.post("/logout", response_model=MessageResponse)
def logout(response: Response):
    response.delete_cookie(ACCESS_COOKIE)
    response.delete_cookie(REFRESH_COOKIE)
    return {"message": "Logged out successfully"}


# ---------------- CURRENT USER ----------------
@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


# ---------------- ROLE MANAGEMENT ----------------
@router.put("/users/{user_id}/role", response_model=UserResponse)
def change_role(
    user_id: int,
    role_data: RoleUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_admin_user),
):
    user = db.query(User).filter(User.id == user_id).first()

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == current_user.id and role_data.role != UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admins cannot demote themselves")

    user.role = role_data.role.value
    db.commit()
    db.refresh(user)

    logger.info(f"User {user.id} role changed to {user.role} by user {current_user.id}")

    return user
