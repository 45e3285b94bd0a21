from .trade_routes import router as trade_routes

__all__ = [
    'trade_routes'
]
