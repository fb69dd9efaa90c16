"""
Identity provider: accounts, password hashing and sign-in sessions.

Sessions are JWTs (HS256) whose ``sid`` claim points at a row of the
``session`` collection, so signing out revokes the token before it expires.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional, Tuple

from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError
from starlette.requests import cookie_parser

from .database import Database, serialize
from .errors import Conflict, Forbidden, Unauthenticated, ValidationError
from .schemas import Role, Session, User

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
SESSION_COOKIE = "zenvira.session_token"
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

# fields returned to clients; never the password hash
PUBLIC_USER_FIELDS = {
    "name": 1,
    "email": 1,
    "role": 1,
    "status": 1,
    "image": 1,
    "email_verified": 1,
    "created_at": 1,
    "updated_at": 1,
}


class Principal(BaseModel):
    """The authenticated caller attached to a request."""

    id: str
    email: str
    name: str
    role: Role


def verify_password_policy(password: str) -> None:
    if not (MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH):
        raise ValidationError(
            f"Password must be {MIN_PASSWORD_LENGTH}-{MAX_PASSWORD_LENGTH} characters long"
        )


def public_user(user: dict) -> dict:
    return serialize({k: v for k, v in user.items() if k != "password_hash"})


def bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    authorization = headers.get("authorization")
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    cookie = headers.get("cookie")
    if cookie:
        return cookie_parser(cookie).get(SESSION_COOKIE) or None
    return None


class IdentityProvider:
    def __init__(self, db: Database, secret: str, expire_minutes: int = 7 * 24 * 60, bcrypt_rounds: int = 12):
        self.db = db
        self.secret = secret
        self.expire_minutes = expire_minutes
        self.pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds
        )

    def hash_password(self, password: str) -> str:
        verify_password_policy(password)
        return self.pwd_context.hash(password)

    def verify_password(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        return self.pwd_context.verify(password, hashed)

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self.expire_minutes))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret, algorithm=ALGORITHM)

    def sign_up(self, name: str, email: str, password: str) -> Tuple[dict, str]:
        email = email.strip().lower()
        if self.db["user"].find_one({"email": email}):
            raise Conflict("Email already registered")
        user = User(
            name=name,
            email=email,
            password_hash=self.hash_password(password),
            role="customer",
            status="active",
            email_verified=True,
        )
        try:
            user_id = self.db.create_document("user", user)
        except DuplicateKeyError:
            raise Conflict("Email already registered")
        logger.info("Registered user %s", user_id)
        return self._start_session(self.db.find_by_id("user", user_id))

    def sign_in(self, email: str, password: str) -> Tuple[dict, str]:
        user = self.db["user"].find_one({"email": email.strip().lower()})
        if not user or not self.verify_password(password, user.get("password_hash", "")):
            raise Unauthenticated("Invalid email or password")
        if user.get("status") == "banned":
            raise Forbidden("This account has been banned")
        return self._start_session(user)

    def _start_session(self, user: dict) -> Tuple[dict, str]:
        expires = datetime.now(timezone.utc) + timedelta(minutes=self.expire_minutes)
        session_id = self.db.create_document(
            "session", Session(user_id=str(user["_id"]), expires_at=expires)
        )
        token = self.create_access_token({"sub": str(user["_id"]), "sid": session_id})
        return public_user(user), token

    def get_session(self, headers: Mapping[str, str]) -> Optional[Principal]:
        """Resolve the caller from request headers; None when there is no valid session."""
        token = bearer_token(headers)
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError:
            return None
        user_id, session_id = payload.get("sub"), payload.get("sid")
        if not user_id or not session_id:
            return None
        session = self.db.find_by_id("session", session_id)
        if not session or session.get("user_id") != user_id:
            return None
        user = self.db.find_by_id("user", user_id)
        if not user or user.get("status") == "banned":
            return None
        return Principal(
            id=str(user["_id"]),
            email=user["email"],
            name=user["name"],
            role=user.get("role", "customer"),
        )

    def sign_out(self, token: Optional[str]) -> bool:
        if not token:
            return False
        try:
            payload = jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except JWTError:
            return False
        return self.db.delete_by_id("session", payload.get("sid"))
