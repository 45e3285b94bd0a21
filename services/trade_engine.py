"""Trade negotiation state machine and the book ownership transfers it drives.

Lifecycle::

    pending -> accepted | rejected | proposed | cancelled
    accepted | proposed -> completed
    proposed -> cancelled

``completed``, ``rejected`` and ``cancelled`` are terminal. Status changes are
written with a compare-and-swap on the status the engine read, so a replayed or
racing call fails with ``InvalidStateError`` instead of transferring twice.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from models.book_models import BookRecord
from models.trade_models import (
    RESPONSE_STATUSES,
    BookSummary,
    PartySummary,
    Trade,
    TradeStatus,
    TradeView,
)
from services.authorization import is_owner, is_party
from services.book_ledger import BookLedger
from services.errors import (
    ForbiddenError,
    InvalidArgumentError,
    InvalidOperationError,
    InvalidStateError,
    NotFoundError,
)
from services.trade_store import TradeStore
from services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

COMPLETABLE_STATUSES = (TradeStatus.ACCEPTED, TradeStatus.PROPOSED)


class InitiateTrade(BaseModel):
    requester_id: str
    requested_book_id: str
    offered_book_id: Optional[str] = None
    notes: Optional[str] = None


class RespondToTrade(BaseModel):
    trade_id: str
    caller_id: str
    status: str
    proposed_book_id: Optional[str] = None
    notes: Optional[str] = None


class TradeAction(BaseModel):
    trade_id: str
    caller_id: str


# (book, new owner)
Transfer = Tuple[BookRecord, str]


class TradeEngine:
    def __init__(self, trade_store: TradeStore, book_ledger: BookLedger, user_directory: Optional[UserDirectory] = None):
        self.trade_store = trade_store
        self.book_ledger = book_ledger
        self.user_directory = user_directory

    async def initiate(self, command: InitiateTrade) -> Trade:
        requested = await self.book_ledger.get_book(command.requested_book_id)
        if not requested:
            raise NotFoundError("Requested book not found.")
        if requested.owner == command.requester_id:
            raise InvalidOperationError("You cannot request a book you already own.")

        if command.offered_book_id:
            if command.offered_book_id == command.requested_book_id:
                raise InvalidArgumentError("A book cannot be offered in exchange for itself.")
            offered = await self.book_ledger.get_book(command.offered_book_id)
            if not offered:
                raise NotFoundError("Offered book not found.")
            if offered.owner != command.requester_id:
                raise InvalidArgumentError("You can only offer a book you own.")

        trade = Trade(
            requester=command.requester_id,
            owner=requested.owner,
            requested_book=requested.id,
            offered_book=command.offered_book_id,
            notes_from_requester=command.notes,
        )
        trade = await self.trade_store.insert(trade)
        logger.info("Trade %s initiated by %s for book %s", trade.id, trade.requester, trade.requested_book)
        return trade

    async def get(self, trade_id: str) -> Trade:
        trade = await self.trade_store.get(trade_id)
        if not trade:
            raise NotFoundError("Trade not found.")
        return trade

    async def list_for_user(self, user_id: str) -> List[Trade]:
        return await self.trade_store.find_by_party(user_id)

    async def respond(self, command: RespondToTrade) -> Trade:
        trade = await self._load(command.trade_id)
        if not is_owner(trade, command.caller_id):
            raise ForbiddenError("You are not authorized to respond to this trade.")

        try:
            status = TradeStatus(command.status)
        except ValueError:
            status = None
        if status not in RESPONSE_STATUSES:
            raise InvalidArgumentError("Invalid trade status.")

        updates: Dict[str, Any] = {"status": status, "notes_from_owner": command.notes}
        if status == TradeStatus.PROPOSED:
            if not command.proposed_book_id:
                raise InvalidArgumentError("A proposed book is required for a counter-offer.")
            proposed = await self.book_ledger.get_book(command.proposed_book_id)
            if not proposed or proposed.owner != command.caller_id:
                raise InvalidArgumentError("Invalid proposed book.")
            updates["proposed_book_from_owner"] = proposed.id

        self._require_status(trade, (TradeStatus.PENDING,), "Trade is not in a pending state.")
        return await self._transition(trade, updates)

    async def accept(self, command: TradeAction) -> Trade:
        """Accept a pending trade and hand the requested book to the requester."""
        trade = await self._load(command.trade_id)
        if not is_owner(trade, command.caller_id):
            raise ForbiddenError("You are not authorized to accept this trade.")
        self._require_status(trade, (TradeStatus.PENDING,), "Trade is not in a pending state.")

        transfers = await self._resolve_transfers(trade, [(trade.requested_book, trade.requester)])
        return await self._transition(trade, {"status": TradeStatus.ACCEPTED}, transfers)

    async def reject(self, command: TradeAction) -> Trade:
        trade = await self._load(command.trade_id)
        if not is_owner(trade, command.caller_id):
            raise ForbiddenError("You are not authorized to reject this trade.")
        self._require_status(trade, (TradeStatus.PENDING,), "Trade is not in a pending state.")
        return await self._transition(trade, {"status": TradeStatus.REJECTED})

    async def cancel(self, command: TradeAction) -> Trade:
        trade = await self._load(command.trade_id)
        if not is_party(trade, command.caller_id):
            raise ForbiddenError("You are not authorized to cancel this trade.")
        # once accepted a trade can only move forward to completion
        if trade.status in (TradeStatus.ACCEPTED, TradeStatus.COMPLETED):
            raise InvalidStateError("Cannot cancel a trade that has been accepted or completed.")
        if trade.is_terminal:
            raise InvalidStateError("Trade is already closed.")
        return await self._transition(trade, {"status": TradeStatus.CANCELLED})

    async def complete(self, command: TradeAction) -> Trade:
        """Complete the swap: requested book to the requester, offered book to the owner."""
        trade = await self._load(command.trade_id)
        if not is_party(trade, command.caller_id):
            raise ForbiddenError("You are not authorized to complete this trade.")
        self._require_status(trade, COMPLETABLE_STATUSES, "Trade must be accepted or proposed before completion.")

        wanted = [(trade.requested_book, trade.requester)]
        if trade.offered_book:
            wanted.append((trade.offered_book, trade.owner))
        transfers = await self._resolve_transfers(trade, wanted)
        return await self._transition(
            trade,
            {"status": TradeStatus.COMPLETED, "trade_date": datetime.utcnow()},
            transfers,
        )

    async def populate(self, trade: Trade) -> TradeView:
        """Resolve user and book references for a response body."""
        return TradeView(
            id=trade.id,
            requester=await self._party_summary(trade.requester),
            owner=await self._party_summary(trade.owner),
            requested_book=await self._book_summary(trade.requested_book),
            offered_book=await self._book_summary(trade.offered_book),
            proposed_book_from_owner=await self._book_summary(trade.proposed_book_from_owner),
            status=trade.status,
            notes_from_requester=trade.notes_from_requester,
            notes_from_owner=trade.notes_from_owner,
            counter_accepted_by_requester=trade.counter_accepted_by_requester,
            trade_date=trade.trade_date,
            created_at=trade.created_at,
            updated_at=trade.updated_at,
        )

    async def _load(self, trade_id: str) -> Trade:
        trade = await self.trade_store.get(trade_id)
        if not trade:
            raise NotFoundError("Trade request not found.")
        return trade

    @staticmethod
    def _require_status(trade: Trade, allowed: Iterable[TradeStatus], message: str) -> None:
        if trade.status not in allowed:
            raise InvalidStateError(message)

    async def _resolve_transfers(self, trade: Trade, wanted: List[Tuple[str, str]]) -> List[Transfer]:
        """Load every book still to be moved; fail before any write if one is missing."""
        transfers = []
        for book_id, new_owner in wanted:
            if book_id in trade.transferred_books:
                continue
            book = await self.book_ledger.get_book(book_id)
            if not book:
                raise NotFoundError(f"Book {book_id} referenced by trade {trade.id} not found.")
            transfers.append((book, new_owner))
        return transfers

    async def _transition(self, trade: Trade, updates: Dict[str, Any], transfers: Optional[List[Transfer]] = None) -> Trade:
        transfers = transfers or []
        updates = dict(updates, updated_at=datetime.utcnow())
        if transfers:
            updates["transferred_books"] = trade.transferred_books + [book.id for book, _ in transfers]

        updated = await self.trade_store.transition(trade.id, trade.status, updates)
        if updated is None:
            raise InvalidStateError("Trade was modified by another request; reload and try again.")
        logger.info("Trade %s moved from %s to %s", trade.id, trade.status.value, updated.status.value)

        if transfers:
            await self._apply_transfers(trade, updated, transfers)
        return updated

    async def _apply_transfers(self, trade: Trade, updated: Trade, transfers: List[Transfer]) -> None:
        applied: List[BookRecord] = []
        for book, new_owner in transfers:
            if await self.book_ledger.update_owner(book.id, new_owner):
                applied.append(book)
                logger.info("Book %s transferred from %s to %s by trade %s", book.id, book.owner, new_owner, trade.id)
                continue

            logger.warning("Book %s disappeared during trade %s; rolling back", book.id, trade.id)
            for done in reversed(applied):
                await self.book_ledger.update_owner(done.id, done.owner)
            restored = await self.trade_store.transition(
                trade.id,
                updated.status,
                {
                    "status": trade.status,
                    "trade_date": trade.trade_date,
                    "transferred_books": trade.transferred_books,
                    "updated_at": trade.updated_at,
                },
            )
            if restored is None:
                logger.error("Could not restore trade %s to %s after a failed transfer", trade.id, trade.status.value)
            raise NotFoundError(f"Book {book.id} referenced by trade {trade.id} not found.")

    async def _party_summary(self, user_id: str) -> Optional[PartySummary]:
        if self.user_directory is None:
            return PartySummary(id=user_id)
        user = await self.user_directory.get_user(user_id)
        if not user:
            return None
        return PartySummary(id=user.id, name=user.name, email=user.email)

    async def _book_summary(self, book_id: Optional[str]) -> Optional[BookSummary]:
        if not book_id:
            return None
        book = await self.book_ledger.get_book(book_id)
        if not book:
            return None
        return BookSummary(id=book.id, title=book.title, author=book.author, photo=book.photo)
