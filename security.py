"""
Bearer-token authentication.

Tokens are HS256 JWTs carrying {id, username, role, exp}. The gate functions
here are framework-free: they take the raw Authorization header value plus
Settings and either return Claims or raise Unauthenticated / InvalidToken.
"""
from datetime import datetime, timedelta, timezone
from typing import Literal, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, ValidationError

from config import Settings
from errors import InvalidToken, Unauthenticated

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class Claims(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    role: Literal["admin", "seller", "buyer"]

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError:
        # unrecognised hash format
        return False


def create_access_token(claims: Claims, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = claims.model_dump()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthenticated()
    return token


def decode_token(token: str, settings: Settings) -> Claims:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise InvalidToken()
    try:
        return Claims(id=payload.get("id"), username=payload.get("username"), role=payload.get("role"))
    except ValidationError:
        raise InvalidToken()


def authenticate(authorization: Optional[str], settings: Settings) -> Claims:
    return decode_token(parse_bearer(authorization), settings)


def peek_claims(authorization: Optional[str], settings: Settings) -> Optional[Claims]:
    """Like authenticate, but a missing or bad token yields None."""
    try:
        return authenticate(authorization, settings)
    except (Unauthenticated, InvalidToken):
        return None
