from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, status
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..orm_models import UserORM
from ..schemas import UserPublic

BCRYPT_MAX_BYTES = 72

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
ALGORITHM = "HS256"


def _ensure_password_within_limit(password: str) -> None:
    """Ensure password length does not exceed bcrypt limits."""
    if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError("Password exceeds bcrypt maximum length")


def hash_password(password: str) -> str:
    _ensure_password_within_limit(password)
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def serialize_user(user: UserORM) -> UserPublic:
    return UserPublic(id=user.id, email=user.email, fullName=user.full_name, isActive=user.is_active)


def get_user_by_email(session: Session, email: str) -> Optional[UserORM]:
    return session.execute(select(UserORM).where(UserORM.email == email.strip().lower())).scalar_one_or_none()


def get_user(session: Session, user_id: str) -> Optional[UserORM]:
    return session.execute(select(UserORM).where(UserORM.id == user_id)).scalar_one_or_none()


def create_user(session: Session, *, email: str, password: str, full_name: str) -> UserORM:
    normalized_email = email.strip().lower()
    if get_user_by_email(session, normalized_email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Користувач уже існує")

    try:
        password_hash = hash_password(password)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Пароль не повинен перевищувати 72 байти",
        ) from exc

    user = UserORM(
        email=normalized_email,
        full_name=full_name.strip() or normalized_email,
        password_hash=password_hash,
    )
    session.add(user)
    session.flush()
    return user


def authenticate_user(session: Session, email: str, password: str) -> Optional[UserORM]:
    user = get_user_by_email(session, email)
    if not user:
        return None
    if not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)
    )
    to_encode = {"sub": subject, "exp": expire}
    return jwt.encode(to_encode, settings.auth_secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.auth_secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Термін дії токена минув") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Недійсний токен") from exc
