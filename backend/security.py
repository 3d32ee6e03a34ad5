from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlmodel import Session

from logger import logger
from . import config
from .database import get_session
from .errors import ForbiddenError, InvalidTokenError, UnauthorizedError
from .models import User
from .policy import require_admin

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


class Token(BaseModel):
    access_token: str
    token_type: str


class TokenData(BaseModel):
    user_id: int


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def token_expiry(expires_delta: Optional[timedelta] = None) -> datetime:
    return datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, expires_at: Optional[datetime] = None):
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"iat": now, "exp": expires_at or token_expiry(expires_delta)})
    encoded_jwt = jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)
    return encoded_jwt


def issue_token(user: User, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    """Sign a token carrying the user's id, email and role; returns it with its expiry."""
    expires_at = token_expiry(expires_delta)
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value},
        expires_at=expires_at,
    )
    return token, expires_at


def verify_token(token: str) -> TokenData:
    """Check signature and expiry; raises InvalidTokenError otherwise."""
    try:
        payload: Dict[str, Any] = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        raise InvalidTokenError()

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise InvalidTokenError()
    return TokenData(user_id=int(subject))


async def get_current_user(session: Session = Depends(get_session), token: str = Depends(oauth2_scheme)) -> User:
    token_data = verify_token(token)
    # Eligibility is re-checked against the store on every request
    user = session.get(User, token_data.user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        logger.warning(f"Rejected request from disabled account: {current_user.email}")
        raise UnauthorizedError("User account is disabled")
    return current_user


async def get_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    if not require_admin(current_user):
        raise ForbiddenError("Admin access required")
    return current_user
