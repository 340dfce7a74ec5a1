"""Delegate for the `User` model."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..core.security import get_password_hash, verify_password
from ..models.user import User
from ..schemas.user import UserCreate, UserUpdate
from .base import ModelDelegate


class UserDelegate(ModelDelegate[User, UserCreate, UserUpdate]):
    client_attr = "user"

    def __init__(self, client):
        super().__init__(client, User, UserCreate, UserUpdate)

    def get_by_email(self, email: Optional[str]) -> Optional[Dict[str, Any]]:
        if not email:
            return None
        return self.find_unique(where={"email": email})

    def get_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.find_unique(where={"username": username})

    def create_user(self, *, email: str, username: str, password: str, **extra) -> Dict[str, Any]:
        """Create a user from a plain password; the stored value is a passlib hash."""
        data = dict(extra, email=email, username=username, password=get_password_hash(password))
        return self.create(data=data, omit={"password": True})

    def authenticate(self, *, email: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the user (without the password hash) when the credentials match."""
        user = self.get_by_email(email)
        if not user:
            return None
        if not verify_password(password, user["password"]):
            return None
        user.pop("password")
        return user

    def update_password(self, *, user_id: str, new_password: str) -> Dict[str, Any]:
        return self.update(
            where={"id": user_id},
            data={"password": get_password_hash(new_password)},
            omit={"password": True},
        )

    def list_admins(self) -> List[Dict[str, Any]]:
        return self.find_many(where={"is_admin": True}, order_by={"created_at": "asc"}, omit={"password": True})
