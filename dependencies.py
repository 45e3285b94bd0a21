from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional
from dataBase import db
from models.user_models import Identity
from services.book_ledger import BookLedger, MongoBookLedger
from services.trade_engine import TradeEngine
from services.trade_store import MongoTradeStore, TradeStore
from services.user_directory import MongoUserDirectory, UserDirectory
from utils import verify_token

bearer_scheme = HTTPBearer(auto_error=False)

def get_trade_store() -> TradeStore:
    return MongoTradeStore(db)

def get_book_ledger() -> BookLedger:
    return MongoBookLedger(db)

def get_user_directory() -> UserDirectory:
    return MongoUserDirectory(db)

def get_trade_engine(
    trade_store: TradeStore = Depends(get_trade_store),
    book_ledger: BookLedger = Depends(get_book_ledger),
    user_directory: UserDirectory = Depends(get_user_directory),
) -> TradeEngine:
    return TradeEngine(trade_store, book_ledger, user_directory)

async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    users: UserDirectory = Depends(get_user_directory),
) -> Identity:
    """Resolve the bearer token to the calling user's id and role"""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authentication failed: No token provided.")
    user_id = verify_token(credentials.credentials)
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication failed: Invalid token.")
    user = await users.get_user(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Authentication failed: Invalid user.")
    return Identity(id=user.id, role=user.role)
