"""
Auth endpoints: register, login, refresh, me, profile.

New accounts get their plan from the authorization policy and a starter
material catalog, so the quote editor has fabrics to pick from right away.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .. import models
from ..auth import (
    create_access_token,
    get_current_user,
    hash_password,
    issue_tokens,
    user_for_refresh_token,
    verify_password,
)
from ..authorization import AuthorizationPolicy, get_authorization_policy
from ..config import settings
from ..database import get_db
from .materials import seed_catalog

router = APIRouter(prefix="/auth", tags=["auth"])


# --- Request/Response schemas ---

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = None
    tax_percentage: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)
    logo_url: Optional[str] = None
    qr_code_url: Optional[str] = None
    conditions: Optional[str] = None
    email_sender_name: Optional[str] = None
    email_reply_to: Optional[str] = None
    notify_workshop_on_new_order: Optional[bool] = None
    send_confirmation_to_customer: Optional[bool] = None


def _user_to_response(user: models.User, policy: AuthorizationPolicy) -> dict:
    """Convert User model to response dict: never expose password_hash."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "address": user.address,
        "phone": user.phone,
        "tax_id": user.tax_id,
        "tax_percentage": user.tax_percentage,
        "logo_url": user.logo_url,
        "qr_code_url": user.qr_code_url,
        "conditions": user.conditions,
        "plan": user.plan,
        "capabilities": sorted(c.value for c in policy.capabilities_for(user)),
        "email_sender_name": user.email_sender_name,
        "email_reply_to": user.email_reply_to,
        "notify_workshop_on_new_order": user.notify_workshop_on_new_order,
        "send_confirmation_to_customer": user.send_confirmation_to_customer,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


# --- Endpoints ---

@router.post("/register")
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
):
    """Create a workshop account. Email is case-insensitive and unique."""
    email = request.email.strip().lower()
    existing = db.query(models.User).filter(models.User.email == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Account with this email already exists",
        )

    user = models.User(
        email=email,
        password_hash=hash_password(request.password),
        name=request.name,
        plan=policy.plan_for(email).value,
        tax_percentage=settings.DEFAULT_TAX_PERCENTAGE,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    seed_catalog(db, user)

    tokens = issue_tokens(user, db)
    return {**tokens, "user": _user_to_response(user, policy)}


@router.post("/login")
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
):
    """Authenticate with email + password. Returns access + refresh tokens."""
    email = request.email.strip().lower()
    user = db.query(models.User).filter(models.User.email == email).first()

    if not user or not user.is_active or not verify_password(request.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    tokens = issue_tokens(user, db)
    return {**tokens, "user": _user_to_response(user, policy)}


@router.post("/refresh")
def refresh(request: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a valid refresh token for a new access token."""
    user = user_for_refresh_token(request.refresh_token, db)
    return {
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
        "user_id": user.id,
    }


@router.get("/me")
def me(
    current_user: models.User = Depends(get_current_user),
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
):
    return _user_to_response(current_user, policy)


@router.put("/profile")
def update_profile(
    update: ProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    policy: AuthorizationPolicy = Depends(get_authorization_policy),
):
    """Update the workshop profile. Tax percentage applies to new pricing runs."""
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)

    current_user.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(current_user)
    return _user_to_response(current_user, policy)
