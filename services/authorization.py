from models.trade_models import Trade

# Role.ADMIN grants nothing here: only the two parties may act on a trade.


def is_owner(trade: Trade, caller_id: str) -> bool:
    return trade.owner == str(caller_id)


def is_requester(trade: Trade, caller_id: str) -> bool:
    return trade.requester == str(caller_id)


def is_party(trade: Trade, caller_id: str) -> bool:
    return is_owner(trade, caller_id) or is_requester(trade, caller_id)
