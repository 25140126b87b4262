"""
Workshop sign-in: bcrypt password hashes and JWT bearer tokens.

Access tokens are stateless and short-lived. Refresh tokens carry a random
jti and are only honoured while their SHA-256 digest is on file in
auth_tokens, so deleting the row revokes the token.

Libraries: python-jose[cryptography] for JWT, passlib[bcrypt] for passwords.
"""

import hashlib
import uuid
from datetime import datetime, timedelta

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import get_db

ACCESS = "access"
REFRESH = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _signing_key() -> str:
    if not settings.JWT_SECRET:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT_SECRET is not configured",
        )
    return settings.JWT_SECRET


def _encode(user_id: int, kind: str, lifetime: timedelta, **claims) -> str:
    payload = {"sub": str(user_id), "type": kind, "exp": datetime.utcnow() + lifetime, **claims}
    return jwt.encode(payload, _signing_key(), algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: int) -> str:
    return _encode(user_id, ACCESS, timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES))


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def decode_token(token: str, expected_type: str) -> dict:
    """Verified claims of a token of the given type; 401 otherwise."""
    try:
        claims = jwt.decode(token, _signing_key(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired token")
    if claims.get("type") != expected_type:
        raise _unauthorized(f"Expected a {expected_type} token")
    if not claims.get("sub"):
        raise _unauthorized("Invalid token payload")
    return claims


def _active_workshop(db: Session, user_id) -> models.User:
    user = db.get(models.User, int(user_id))
    if user is None or not user.is_active:
        raise _unauthorized("Workshop account not found")
    return user


def issue_tokens(user: models.User, db: Session) -> dict:
    """Access + refresh pair for a signed-in workshop. Keeps the refresh digest."""
    lifetime = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)
    refresh_token = _encode(user.id, REFRESH, lifetime, jti=uuid.uuid4().hex)
    db.add(models.AuthToken(
        user_id=user.id,
        token_hash=token_digest(refresh_token),
        token_type=REFRESH,
        expires_at=datetime.utcnow() + lifetime,
    ))
    db.commit()
    return {
        "access_token": create_access_token(user.id),
        "refresh_token": refresh_token,
        "token_type": "bearer",
        "user_id": user.id,
    }


def user_for_refresh_token(token: str, db: Session) -> models.User:
    """The workshop behind a refresh token that is still on file and unexpired."""
    claims = decode_token(token, REFRESH)
    stored = db.query(models.AuthToken).filter(
        models.AuthToken.token_hash == token_digest(token),
        models.AuthToken.token_type == REFRESH,
    ).first()
    if stored is None:
        raise _unauthorized("Refresh token revoked")
    if stored.expires_at < datetime.utcnow():
        raise _unauthorized("Refresh token expired")
    return _active_workshop(db, claims["sub"])


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Dependency: the workshop named by the bearer access token."""
    if credentials is None:
        raise _unauthorized("Authentication required")
    claims = decode_token(credentials.credentials, ACCESS)
    return _active_workshop(db, claims["sub"])
