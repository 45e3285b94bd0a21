from pydantic import BaseModel
from typing import Optional
from enum import Enum

class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"

class Identity(BaseModel):
    """The authenticated caller of a request."""
    id: str
    role: Role = Role.USER

class UserRecord(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    role: Role = Role.USER
