from datetime import timedelta
import uuid
from typing import Optional
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from storefront.config import settings
from storefront.core.datetime_utils import utc_now

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class TokenExpiredError(Exception):
    """Token signature is valid but its lifetime is over"""


class TokenInvalidError(Exception):
    """Token is malformed, tampered with or of the wrong type"""


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token (24h by default)"""
    to_encode = data.copy()
    now = utc_now()
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    # jti keeps tokens issued within the same second distinct for the blacklist
    to_encode.update({"exp": expire, "iat": now, "type": "access", "jti": uuid.uuid4().hex})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt


def create_user_token(user) -> str:
    """Access token carrying the claims the API checks on every request"""
    return create_access_token({"user_id": user.id, "is_admin": bool(user.is_admin)})


def decode_access_token(token: str) -> dict:
    """
    Verify JWT signature, expiry and type.

    Raises:
        TokenExpiredError: the token was valid but has expired
        TokenInvalidError: anything else wrong with the token
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError(str(e)) from e
    except JWTError as e:
        raise TokenInvalidError(str(e)) from e

    if payload.get("type") != "access" or not payload.get("user_id"):
        raise TokenInvalidError("Unexpected token payload")
    return payload


def seconds_until_expiry(payload: dict) -> int:
    """Remaining lifetime of a decoded token, never below 1 second"""
    exp = payload.get("exp")
    if not exp:
        return settings.ACCESS_TOKEN_EXPIRE_HOURS * 3600
    remaining = int(exp - utc_now().timestamp())
    return max(remaining, 1)


def get_password_hash(password: str) -> str:
    """Hash a password"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against hash"""
    return pwd_context.verify(plain_password, hashed_password)
