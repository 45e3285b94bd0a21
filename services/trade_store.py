"""Trade persistence. Every status change goes through a conditional write."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument

from models.trade_models import Trade, TradeStatus
from utils import to_object_id


class TradeStore(ABC):

    @abstractmethod
    async def insert(self, trade: Trade) -> Trade:
        """Persist a new trade and return it with its assigned id."""
        ...

    @abstractmethod
    async def get(self, trade_id: str) -> Optional[Trade]:
        ...

    @abstractmethod
    async def find_by_party(self, user_id: str) -> List[Trade]:
        """Trades where the user is requester or owner, newest first."""
        ...

    @abstractmethod
    async def transition(
        self, trade_id: str, expected_status: TradeStatus, updates: Dict[str, Any]
    ) -> Optional[Trade]:
        """Apply `updates` only if the stored status still equals `expected_status`.

        Returns the updated trade, or None when the trade is gone or its status
        changed since it was read.
        """
        ...


# user and book references are stored as ObjectIds, like the books and users collections
REFERENCE_FIELDS = ("requester", "owner", "requested_book", "offered_book", "proposed_book_from_owner")


def _to_document(updates: Dict[str, Any]) -> Dict[str, Any]:
    document = {}
    for name, value in updates.items():
        field = Trade.model_fields[name]
        if isinstance(value, Enum):
            value = value.value
        elif name in REFERENCE_FIELDS and value is not None:
            value = ObjectId(value)
        elif name == "transferred_books":
            value = [ObjectId(book_id) for book_id in value]
        document[field.alias or name] = value
    return document


def _from_document(document) -> Trade:
    document["id"] = str(document["_id"])
    del document["_id"]
    for name in REFERENCE_FIELDS:
        key = Trade.model_fields[name].alias or name
        if document.get(key) is not None:
            document[key] = str(document[key])
    document["transferredBooks"] = [str(book_id) for book_id in document.get("transferredBooks", [])]
    return Trade(**document)


class MongoTradeStore(TradeStore):
    def __init__(self, database):
        self.collection = database.trades

    async def insert(self, trade: Trade) -> Trade:
        trade_dict = _to_document(trade.model_dump(exclude={"id"}))
        result = await self.collection.insert_one(trade_dict)
        return trade.model_copy(update={"id": str(result.inserted_id)})

    async def get(self, trade_id: str) -> Optional[Trade]:
        oid = to_object_id(trade_id)
        if oid is None:
            return None
        trade = await self.collection.find_one({"_id": oid})
        return _from_document(trade) if trade else None

    async def find_by_party(self, user_id: str) -> List[Trade]:
        oid = to_object_id(user_id)
        if oid is None:
            return []
        query = {
            "$or": [
                {"requester": oid},
                {"owner": oid}
            ]
        }
        trades = []
        cursor = self.collection.find(query).sort("createdAt", DESCENDING)
        async for trade in cursor:
            trades.append(_from_document(trade))
        return trades

    async def transition(
        self, trade_id: str, expected_status: TradeStatus, updates: Dict[str, Any]
    ) -> Optional[Trade]:
        oid = to_object_id(trade_id)
        if oid is None:
            return None
        updated = await self.collection.find_one_and_update(
            {"_id": oid, "status": expected_status.value},
            {"$set": _to_document(updates)},
            return_document=ReturnDocument.AFTER,
        )
        return _from_document(updated) if updated else None


class InMemoryTradeStore(TradeStore):
    def __init__(self) -> None:
        self._trades: Dict[str, Trade] = {}

    async def insert(self, trade: Trade) -> Trade:
        stored = trade.model_copy(update={"id": str(ObjectId())})
        self._trades[stored.id] = stored
        return stored

    async def get(self, trade_id: str) -> Optional[Trade]:
        return self._trades.get(trade_id)

    async def find_by_party(self, user_id: str) -> List[Trade]:
        trades = [t for t in self._trades.values() if user_id in (t.requester, t.owner)]
        return sorted(trades, key=lambda t: t.created_at, reverse=True)

    async def transition(
        self, trade_id: str, expected_status: TradeStatus, updates: Dict[str, Any]
    ) -> Optional[Trade]:
        # no await between the check and the write, so this is atomic on the event loop
        trade = self._trades.get(trade_id)
        if trade is None or trade.status != expected_status:
            return None
        updated = trade.model_copy(update=updates)
        self._trades[trade_id] = updated
        return updated
