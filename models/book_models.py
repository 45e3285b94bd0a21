from pydantic import BaseModel
from typing import Optional
from datetime import datetime

class BookRecord(BaseModel):
    id: str
    title: str
    author: str
    photo: Optional[str] = None
    owner: str
    updated_at: Optional[datetime] = None
