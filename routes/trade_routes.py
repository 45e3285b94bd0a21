from fastapi import APIRouter, Depends, HTTPException
from typing import List
import logging
from dependencies import get_current_identity, get_trade_engine
from models.trade_models import InitiateTradeRequest, RespondTradeRequest, TradeMessage, TradeView
from models.user_models import Identity
from services.errors import TradeError, UnexpectedError
from services.trade_engine import InitiateTrade, RespondToTrade, TradeAction, TradeEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trades", tags=["trades"])

@router.post("", response_model=TradeView, status_code=201)
async def initiate_trade(
    request: InitiateTradeRequest,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        trade = await engine.initiate(InitiateTrade(
            requester_id=caller.id,
            requested_book_id=request.requested_book_id,
            offered_book_id=request.offered_book_id,
            notes=request.notes,
        ))
        return await engine.populate(trade)
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error initiating trade")
        raise UnexpectedError("Failed to initiate trade.") from e

@router.get("", response_model=List[TradeView])
async def get_user_trades(
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        trades = await engine.list_for_user(caller.id)
        return [await engine.populate(trade) for trade in trades]
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error getting user trades")
        raise UnexpectedError("Failed to retrieve trades.") from e

@router.get("/{trade_id}", response_model=TradeView)
async def get_single_trade(
    trade_id: str,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        trade = await engine.get(trade_id)
        return await engine.populate(trade)
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error getting trade %s", trade_id)
        raise UnexpectedError("Failed to retrieve trade.") from e

@router.put("/{trade_id}", response_model=TradeView)
async def respond_to_trade(
    trade_id: str,
    response: RespondTradeRequest,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        trade = await engine.respond(RespondToTrade(
            trade_id=trade_id,
            caller_id=caller.id,
            status=response.status,
            proposed_book_id=response.proposed_book_id,
            notes=response.notes,
        ))
        return await engine.populate(trade)
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error responding to trade %s", trade_id)
        raise UnexpectedError("Failed to respond to trade.") from e

@router.put("/{trade_id}/accept", response_model=TradeMessage)
async def accept_trade(
    trade_id: str,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        await engine.accept(TradeAction(trade_id=trade_id, caller_id=caller.id))
        return {"message": "Trade accepted successfully!"}
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error accepting trade %s", trade_id)
        raise UnexpectedError("Failed to accept trade.") from e

@router.put("/{trade_id}/reject", response_model=TradeMessage)
async def reject_trade(
    trade_id: str,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        await engine.reject(TradeAction(trade_id=trade_id, caller_id=caller.id))
        return {"message": "Trade rejected successfully!"}
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error rejecting trade %s", trade_id)
        raise UnexpectedError("Failed to reject trade.") from e

@router.delete("/{trade_id}", response_model=TradeView)
async def cancel_trade(
    trade_id: str,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        trade = await engine.cancel(TradeAction(trade_id=trade_id, caller_id=caller.id))
        return await engine.populate(trade)
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error cancelling trade %s", trade_id)
        raise UnexpectedError("Failed to cancel trade.") from e

@router.put("/{trade_id}/complete", response_model=TradeView)
async def complete_trade(
    trade_id: str,
    caller: Identity = Depends(get_current_identity),
    engine: TradeEngine = Depends(get_trade_engine),
):
    try:
        trade = await engine.complete(TradeAction(trade_id=trade_id, caller_id=caller.id))
        return await engine.populate(trade)
    except (TradeError, HTTPException):
        raise
    except Exception as e:
        logger.exception("Error completing trade %s", trade_id)
        raise UnexpectedError("Failed to complete trade.") from e
