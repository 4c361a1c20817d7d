"""Autentikasi: direktori user di memori, hash password, dan token bearer JWT."""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from .errors import AuthenticationError, UserNotFoundError
from .models import UserProfile

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# (username, password, email, name, role)
DEFAULT_USERS = [
    ("admin", "admin123", "admin@ioteventfeed.com", "Admin User", "administrator"),
    ("user1", "password123", "user1@ioteventfeed.com", "John Doe", "user"),
    ("demo", "demo123", "demo@ioteventfeed.com", "Demo User", "user"),
]


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


@dataclass(frozen=True)
class User:
    id: str
    username: str
    email: str
    name: str
    role: str
    password_hash: str

    def profile(self) -> UserProfile:
        # password_hash tidak pernah ikut diserialisasi
        return UserProfile(id=self.id, username=self.username, email=self.email,
                           name=self.name, role=self.role)


@dataclass(frozen=True)
class Identity:
    subject_id: str
    subject_name: str


class UserDirectory:
    def __init__(self):
        self._by_username: Dict[str, User] = {}

    def add(self, username: str, password: str, email: str, name: str, role: str = "user") -> User:
        user = User(
            id=str(uuid.uuid4()),
            username=username,
            email=email,
            name=name,
            role=role,
            password_hash=hash_password(password),
        )
        self._by_username[username] = user
        return user

    def get_by_username(self, username: str) -> Optional[User]:
        return self._by_username.get(username)

    def get_by_id(self, user_id: str) -> User:
        for user in self._by_username.values():
            if user.id == user_id:
                return user
        raise UserNotFoundError("The requested user does not exist")

    @classmethod
    def with_defaults(cls) -> "UserDirectory":
        directory = cls()
        for username, password, email, name, role in DEFAULT_USERS:
            directory.add(username, password, email, name, role)
        return directory


class Authenticator:
    """
    authenticate(username, password) -> token
    validate(token) -> Identity
    """

    def __init__(self, users: UserDirectory, secret: str, algorithm: str = "HS256",
                 expiration_hours: int = 24):
        self.users = users
        self._secret = secret
        self._algorithm = algorithm
        self._expiration_hours = expiration_hours

    def authenticate(self, username: str, password: str) -> str:
        user = self.users.get_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            logging.warning(f"Login failed: {username}")
            raise AuthenticationError("Username or password is incorrect", error="Invalid credentials")

        now = datetime.now(timezone.utc)
        claims = {
            "sub": user.id,
            "username": user.username,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(hours=max(self._expiration_hours, 1))).timestamp()),
        }
        logging.info(f"Login successful - username: {username}, user_id: {user.id}")
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def validate(self, token: str) -> Identity:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as exc:
            raise AuthenticationError(str(exc), error="Invalid token") from exc

        subject = str(payload.get("sub", "")).strip()
        if not subject:
            raise AuthenticationError("Token missing subject", error="Invalid token")
        return Identity(subject_id=subject, subject_name=str(payload.get("username", "")))
