from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from enum import Enum

class TradeStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PROPOSED = "proposed"

# statuses the owner may answer a pending trade with
RESPONSE_STATUSES = (TradeStatus.ACCEPTED, TradeStatus.REJECTED, TradeStatus.PROPOSED)
TERMINAL_STATUSES = (TradeStatus.COMPLETED, TradeStatus.REJECTED, TradeStatus.CANCELLED)

class Trade(BaseModel):
    id: Optional[str] = None
    requester: str
    owner: str
    requested_book: str = Field(alias="requestedBook")
    offered_book: Optional[str] = Field(default=None, alias="offeredBook")
    proposed_book_from_owner: Optional[str] = Field(default=None, alias="proposedBookFromOwner")
    status: TradeStatus = TradeStatus.PENDING
    notes_from_requester: Optional[str] = Field(default=None, alias="notesFromRequester")
    notes_from_owner: Optional[str] = Field(default=None, alias="notesFromOwner")
    # Reserved: no transition reads or writes it yet.
    counter_accepted_by_requester: bool = Field(default=False, alias="counterAcceptedByRequester")
    transferred_books: List[str] = Field(default_factory=list, alias="transferredBooks")
    trade_date: Optional[datetime] = Field(default=None, alias="tradeDate")
    created_at: datetime = Field(default_factory=datetime.utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=datetime.utcnow, alias="updatedAt")

    class Config:
        populate_by_name = True

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

class InitiateTradeRequest(BaseModel):
    requested_book_id: str = Field(alias="requestedBookId")
    offered_book_id: Optional[str] = Field(default=None, alias="offeredBookId")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True

class RespondTradeRequest(BaseModel):
    # validated by the engine so an unknown value is a 400, not a schema error
    status: str
    proposed_book_id: Optional[str] = Field(default=None, alias="proposedBookId")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True

class PartySummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

class BookSummary(BaseModel):
    id: str
    title: Optional[str] = None
    author: Optional[str] = None
    photo: Optional[str] = None

class TradeView(BaseModel):
    """Trade with its user and book references resolved for responses."""
    id: str
    requester: Optional[PartySummary] = None
    owner: Optional[PartySummary] = None
    requested_book: Optional[BookSummary] = Field(default=None, alias="requestedBook")
    offered_book: Optional[BookSummary] = Field(default=None, alias="offeredBook")
    proposed_book_from_owner: Optional[BookSummary] = Field(default=None, alias="proposedBookFromOwner")
    status: TradeStatus
    notes_from_requester: Optional[str] = Field(default=None, alias="notesFromRequester")
    notes_from_owner: Optional[str] = Field(default=None, alias="notesFromOwner")
    counter_accepted_by_requester: bool = Field(default=False, alias="counterAcceptedByRequester")
    trade_date: Optional[datetime] = Field(default=None, alias="tradeDate")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    class Config:
        populate_by_name = True

class TradeMessage(BaseModel):
    message: str
