"""
Authentication service with JWT token management.
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from bson import ObjectId
from bson.errors import InvalidId

from ..config import get_settings
from ..database import Database
from ..models.user import User, Token, TokenData, UserRole

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _to_user(doc: dict) -> User:
    return User(
        _id=str(doc["_id"]),
        username=doc["username"],
        full_name=doc["full_name"],
        role=UserRole(doc["role"]),
        is_active=doc.get("is_active", True),
        created_at=doc["created_at"]
    )


class AuthService:
    """Authentication and user lookup."""

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create JWT access token."""
        to_encode = data.copy()
        expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_token(token: str) -> Optional[TokenData]:
        """Decode and validate JWT token."""
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None
        user_id = payload.get("sub")
        if user_id is None:
            return None
        try:
            role = UserRole(payload.get("role"))
        except ValueError:
            return None
        return TokenData(user_id=user_id, username=payload.get("username"), role=role)

    @classmethod
    async def get_user_by_username(cls, username: str) -> Optional[dict]:
        users = Database.get_collection("users")
        return await users.find_one({"username": username.lower()})

    @classmethod
    async def get_user_by_id(cls, user_id: str) -> Optional[dict]:
        users = Database.get_collection("users")
        try:
            return await users.find_one({"_id": ObjectId(user_id)})
        except InvalidId:
            return None

    @classmethod
    async def create_user(
        cls,
        username: str,
        full_name: str,
        password: str,
        role: UserRole = UserRole.SECRETARY
    ) -> User:
        """Create a dashboard user."""
        users = Database.get_collection("users")

        if await cls.get_user_by_username(username):
            raise ValueError("User with this username already exists")

        user_doc = {
            "username": username.lower(),
            "full_name": full_name,
            "role": role.value,
            "hashed_password": cls.get_password_hash(password),
            "is_active": True,
            "created_at": datetime.utcnow()
        }
        result = await users.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id
        return _to_user(user_doc)

    @classmethod
    async def authenticate_user(cls, username: str, password: str) -> Optional[User]:
        user = await cls.get_user_by_username(username)
        if not user:
            return None
        if not cls.verify_password(password, user["hashed_password"]):
            return None
        return _to_user(user)

    @classmethod
    async def login(cls, username: str, password: str) -> Optional[Token]:
        """Login user and return access token."""
        user = await cls.authenticate_user(username, password)
        if not user:
            return None

        access_token = cls.create_access_token(
            data={
                "sub": user.id,
                "username": user.username,
                "role": user.role.value
            }
        )
        return Token(access_token=access_token, user=user)

    @classmethod
    async def get_current_user(cls, token: str) -> Optional[User]:
        """Get current user from token."""
        token_data = cls.decode_token(token)
        if not token_data:
            return None

        user = await cls.get_user_by_id(token_data.user_id)
        if not user:
            return None
        return _to_user(user)
