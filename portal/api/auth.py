from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.security import create_access_token, hash_password, verify_password
from portal.db.session import get_db
from portal.models.common import utcnow
from portal.models.user import User, UserRole
from portal.schemas.auth import LoginRequest, RegisterRequest, TokenResponse

router = APIRouter()
_LOG = logging.getLogger("portal.http")

_MIN_PASSWORD_LENGTH = 8
_SELF_SERVICE_ROLES = {UserRole.USER, UserRole.FREELANCER, UserRole.CLIENT}


def _token_for(user: User) -> TokenResponse:
    token = create_access_token(
        user.id,
        user.email,
        user.role.value,
        settings.JWT_SECRET,
        timedelta(minutes=settings.JWT_TTL_MINUTES),
    )
    return TokenResponse(access_token=token, user_id=user.id, role=user.role.value)


def _required(value: str | None, field: str, max_length: int) -> str:
    text = (value or "").strip()
    if not text:
        raise HTTPException(status_code=400, detail=f'Field "{field}" is required')
    if len(text) > max_length:
        raise HTTPException(status_code=400, detail=f'Field "{field}" cannot exceed {max_length} characters')
    return text


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    email = _required(payload.email, "email", 255).lower()
    if "@" not in email:
        raise HTTPException(status_code=400, detail='Invalid field "email"')
    if len(payload.password or "") < _MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {_MIN_PASSWORD_LENGTH} characters")

    role = UserRole.USER
    if payload.role:
        key = payload.role.strip().upper()
        if key not in UserRole.__members__ or UserRole[key] not in _SELF_SERVICE_ROLES:
            raise HTTPException(status_code=400, detail='Invalid field "role"')
        role = UserRole[key]

    if db.query(User.id).filter(User.email == email).first() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")

    phone = (payload.phone or "").strip() or None
    if phone is not None and len(phone) > 15:
        raise HTTPException(status_code=400, detail='Field "phone" cannot exceed 15 characters')

    user = User(
        first_name=_required(payload.first_name, "first_name", 50),
        last_name=_required(payload.last_name, "last_name", 50),
        email=email,
        password_hash=hash_password(payload.password),
        phone=phone,
        role=role,
        email_verified=False,
        account_locked=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Email already registered")
    db.refresh(user)
    _LOG.info("user registered user_id=%s role=%s", user.id, user.role.value)
    return _token_for(user)


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if user.account_locked:
        raise HTTPException(status_code=401, detail="Account is locked")

    user.last_login = utcnow()
    db.commit()
    return _token_for(user)
