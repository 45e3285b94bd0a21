"""MongoDB collaborators against an in-process motor mock."""

from datetime import datetime, timedelta

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from models.trade_models import Trade, TradeStatus
from models.user_models import Role
from services.book_ledger import InMemoryBookLedger, MongoBookLedger
from services.errors import InvalidStateError
from services.trade_engine import InitiateTrade, TradeAction, TradeEngine
from services.trade_store import MongoTradeStore
from services.user_directory import MongoUserDirectory

ALICE = ObjectId()
CAROL = ObjectId()


@pytest.fixture
def database():
    return AsyncMongoMockClient()["bookswap_test"]


@pytest.fixture
async def dune_id(database):
    result = await database.books.insert_one({
        "title": "Dune", "author": "Frank Herbert", "photo": "uploads/dune.jpg", "owner": ALICE,
    })
    return str(result.inserted_id)


def _trade(**overrides) -> Trade:
    fields = dict(requester=str(CAROL), owner=str(ALICE), requested_book=str(ObjectId()))
    fields.update(overrides)
    return Trade(**fields)


class TestMongoTradeStore:
    async def test_stale_expected_status_leaves_document_unchanged(self, database):
        store = MongoTradeStore(database)
        trade = await store.insert(_trade())

        accepted = await store.transition(trade.id, TradeStatus.PENDING, {"status": TradeStatus.ACCEPTED})
        assert accepted.status == TradeStatus.ACCEPTED

        stale = await store.transition(trade.id, TradeStatus.PENDING, {"status": TradeStatus.REJECTED})
        assert stale is None
        raw = await database.trades.find_one({"_id": ObjectId(trade.id)})
        assert raw["status"] == "accepted"

    async def test_transition_on_invalid_id(self, database):
        assert await MongoTradeStore(database).transition("nope", TradeStatus.PENDING, {}) is None

    async def test_insert_and_get_round_trip(self, database):
        store = MongoTradeStore(database)
        offered = str(ObjectId())
        trade = await store.insert(_trade(offered_book=offered, notes_from_requester="Swap?"))

        raw = await database.trades.find_one({"_id": ObjectId(trade.id)})
        assert raw["requester"] == CAROL
        assert raw["owner"] == ALICE
        assert raw["offeredBook"] == ObjectId(offered)
        assert raw["notesFromRequester"] == "Swap?"
        assert raw["status"] == "pending"
        assert raw["proposedBookFromOwner"] is None

        loaded = await store.get(trade.id)
        assert loaded.id == trade.id
        assert loaded.requester == str(CAROL)
        assert loaded.offered_book == offered
        assert loaded.requested_book == trade.requested_book
        assert loaded.transferred_books == []

    async def test_transferred_books_round_trip_as_strings(self, database):
        store = MongoTradeStore(database)
        trade = await store.insert(_trade())
        updated = await store.transition(
            trade.id, TradeStatus.PENDING,
            {"status": TradeStatus.ACCEPTED, "transferred_books": [trade.requested_book]},
        )
        assert updated.transferred_books == [trade.requested_book]
        raw = await database.trades.find_one({"_id": ObjectId(trade.id)})
        assert raw["transferredBooks"] == [ObjectId(trade.requested_book)]

    async def test_find_by_party_newest_first(self, database):
        store = MongoTradeStore(database)
        now = datetime.utcnow()
        older = await store.insert(_trade(created_at=now - timedelta(days=1)))
        newer = await store.insert(_trade(requester=str(ALICE), owner=str(ObjectId()), created_at=now))
        await store.insert(_trade(requester=str(ObjectId()), owner=str(ObjectId())))

        assert [t.id for t in await store.find_by_party(str(ALICE))] == [newer.id, older.id]
        assert await store.find_by_party("not-an-id") == []

    async def test_get_unknown_or_invalid(self, database):
        store = MongoTradeStore(database)
        assert await store.get(str(ObjectId())) is None
        assert await store.get("not-an-id") is None


class TestMongoBookLedger:
    async def test_get_book(self, database, dune_id):
        book = await MongoBookLedger(database).get_book(dune_id)
        assert book.title == "Dune"
        assert book.owner == str(ALICE)

    async def test_update_owner_keeps_object_id_type(self, database, dune_id):
        ledger = MongoBookLedger(database)
        assert await ledger.update_owner(dune_id, str(CAROL)) is True

        raw = await database.books.find_one({"_id": ObjectId(dune_id)})
        assert raw["owner"] == CAROL
        assert isinstance(raw["owner"], ObjectId)
        assert (await ledger.get_book(dune_id)).owner == str(CAROL)

    async def test_update_owner_on_missing_book(self, database):
        ledger = MongoBookLedger(database)
        assert await ledger.update_owner(str(ObjectId()), str(CAROL)) is False
        assert await ledger.update_owner("not-an-id", str(CAROL)) is False

    async def test_exists(self, database, dune_id):
        ledger = MongoBookLedger(database)
        assert await ledger.exists(dune_id) is True
        assert await ledger.exists(str(ObjectId())) is False
        assert await ledger.exists("not-an-id") is False


async def test_in_memory_ledger_exists():
    ledger = InMemoryBookLedger()
    book = ledger.add_book("Emma", "Jane Austen", str(ALICE))
    assert await ledger.exists(book.id) is True
    ledger.remove_book(book.id)
    assert await ledger.exists(book.id) is False


class TestMongoUserDirectory:
    async def test_get_user_with_role(self, database):
        result = await database.users.insert_one({"name": "admin", "email": "admin@example.com", "role": "admin"})
        user = await MongoUserDirectory(database).get_user(str(result.inserted_id))
        assert user.name == "admin"
        assert user.role == Role.ADMIN

    async def test_unknown_role_falls_back_to_user(self, database):
        result = await database.users.insert_one({"name": "carol", "role": "superuser"})
        user = await MongoUserDirectory(database).get_user(str(result.inserted_id))
        assert user.role == Role.USER
        assert user.email is None

    async def test_missing_user(self, database):
        directory = MongoUserDirectory(database)
        assert await directory.get_user(str(ObjectId())) is None
        assert await directory.get_user("not-an-id") is None


async def test_accept_over_mongo_transfers_once_and_keeps_owner_type(database, dune_id):
    engine = TradeEngine(MongoTradeStore(database), MongoBookLedger(database), MongoUserDirectory(database))
    trade = await engine.initiate(InitiateTrade(requester_id=str(CAROL), requested_book_id=dune_id))
    assert trade.owner == str(ALICE)

    await engine.accept(TradeAction(trade_id=trade.id, caller_id=str(ALICE)))
    with pytest.raises(InvalidStateError):
        await engine.accept(TradeAction(trade_id=trade.id, caller_id=str(ALICE)))

    raw_book = await database.books.find_one({"_id": ObjectId(dune_id)})
    assert raw_book["owner"] == CAROL
    assert isinstance(raw_book["owner"], ObjectId)
    raw_trade = await database.trades.find_one({"_id": ObjectId(trade.id)})
    assert raw_trade["status"] == "accepted"
    assert raw_trade["transferredBooks"] == [ObjectId(dune_id)]
