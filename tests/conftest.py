"""Shared fixtures: in-memory collaborators seeded with a small library."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-the-suite-only-0123456789")

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from dependencies import get_book_ledger, get_trade_store, get_user_directory
from main import app
from models.user_models import Role
from services.book_ledger import InMemoryBookLedger
from services.trade_engine import TradeEngine
from services.trade_store import InMemoryTradeStore
from services.user_directory import InMemoryUserDirectory
from utils import create_access_token


@pytest.fixture
def trade_store() -> InMemoryTradeStore:
    return InMemoryTradeStore()


@pytest.fixture
def users() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture
def book_ledger() -> InMemoryBookLedger:
    return InMemoryBookLedger()


@pytest.fixture
def people(users: InMemoryUserDirectory) -> SimpleNamespace:
    return SimpleNamespace(
        alice=users.add_user("alice", "alice@example.com"),
        carol=users.add_user("carol", "carol@example.com"),
        mallory=users.add_user("mallory", "mallory@example.com"),
        admin=users.add_user("admin", "admin@example.com", role=Role.ADMIN),
    )


@pytest.fixture
def books(book_ledger: InMemoryBookLedger, people: SimpleNamespace) -> SimpleNamespace:
    return SimpleNamespace(
        dune=book_ledger.add_book("Dune", "Frank Herbert", people.alice.id, photo="uploads/dune.jpg"),
        emma=book_ledger.add_book("Emma", "Jane Austen", people.alice.id),
        ubik=book_ledger.add_book("Ubik", "Philip K. Dick", people.carol.id),
        solaris=book_ledger.add_book("Solaris", "Stanislaw Lem", people.mallory.id),
    )


@pytest.fixture
def engine(trade_store, book_ledger, users) -> TradeEngine:
    return TradeEngine(trade_store, book_ledger, users)


@pytest.fixture
def client(trade_store, book_ledger, users):
    app.dependency_overrides[get_trade_store] = lambda: trade_store
    app.dependency_overrides[get_book_ledger] = lambda: book_ledger
    app.dependency_overrides[get_user_directory] = lambda: users
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth():
    def headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'user_id': user_id})}"}
    return headers
