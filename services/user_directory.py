"""User lookups for authentication and for populating trade responses."""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from bson import ObjectId

from models.user_models import Role, UserRecord
from utils import to_object_id


class UserDirectory(ABC):

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        ...


class MongoUserDirectory(UserDirectory):
    def __init__(self, database):
        self.collection = database.users

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        user = await self.collection.find_one({"_id": oid}, {"name": 1, "email": 1, "role": 1})
        if not user:
            return None
        try:
            role = Role(user.get("role", Role.USER.value))
        except ValueError:
            role = Role.USER
        return UserRecord(
            id=str(user["_id"]),
            name=user.get("name", ""),
            email=user.get("email"),
            role=role,
        )


class InMemoryUserDirectory(UserDirectory):
    def __init__(self) -> None:
        self._users: Dict[str, UserRecord] = {}

    def add_user(self, name: str, email: Optional[str] = None, role: Role = Role.USER) -> UserRecord:
        user = UserRecord(id=str(ObjectId()), name=name, email=email, role=role)
        self._users[user.id] = user
        return user

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self._users.get(user_id)
