"""Book ownership records the trade engine reads and transfers."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from bson import ObjectId

from models.book_models import BookRecord
from utils import to_object_id


class BookLedger(ABC):

    @abstractmethod
    async def get_book(self, book_id: str) -> Optional[BookRecord]:
        ...

    @abstractmethod
    async def update_owner(self, book_id: str, owner_id: str) -> bool:
        """Set the book's owner. Returns False if the book no longer exists."""
        ...

    async def exists(self, book_id: str) -> bool:
        return await self.get_book(book_id) is not None


def serialize_book(book) -> dict:
    return {
        "id": str(book["_id"]),
        "title": book.get("title", ""),
        "author": book.get("author", ""),
        "photo": book.get("photo"),
        "owner": str(book.get("owner")),
        "updated_at": book.get("updatedAt"),
    }


class MongoBookLedger(BookLedger):
    def __init__(self, database):
        self.collection = database.books

    async def get_book(self, book_id: str) -> Optional[BookRecord]:
        oid = to_object_id(book_id)
        if oid is None:
            return None
        book = await self.collection.find_one({"_id": oid})
        if not book:
            return None
        return BookRecord(**serialize_book(book))

    async def update_owner(self, book_id: str, owner_id: str) -> bool:
        oid = to_object_id(book_id)
        if oid is None:
            return False
        result = await self.collection.update_one(
            {"_id": oid},
            {"$set": {"owner": ObjectId(owner_id), "updatedAt": datetime.utcnow()}}
        )
        return result.matched_count == 1

    async def exists(self, book_id: str) -> bool:
        oid = to_object_id(book_id)
        if oid is None:
            return False
        return await self.collection.count_documents({"_id": oid}, limit=1) > 0


class InMemoryBookLedger(BookLedger):
    def __init__(self) -> None:
        self._books: Dict[str, BookRecord] = {}

    def add_book(self, title: str, author: str, owner: str, photo: Optional[str] = None) -> BookRecord:
        book = BookRecord(id=str(ObjectId()), title=title, author=author, owner=owner, photo=photo)
        self._books[book.id] = book
        return book

    def remove_book(self, book_id: str) -> None:
        self._books.pop(book_id, None)

    async def get_book(self, book_id: str) -> Optional[BookRecord]:
        return self._books.get(book_id)

    async def update_owner(self, book_id: str, owner_id: str) -> bool:
        book = self._books.get(book_id)
        if book is None:
            return False
        self._books[book_id] = book.model_copy(update={"owner": owner_id, "updated_at": datetime.utcnow()})
        return True
