"""Errors raised by the trade engine, each carrying the HTTP status it maps to."""


class TradeError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(TradeError):
    status_code = 404


class ForbiddenError(TradeError):
    status_code = 403


class InvalidStateError(TradeError):
    status_code = 400


class InvalidArgumentError(TradeError):
    status_code = 400


class InvalidOperationError(InvalidArgumentError):
    pass


class UnexpectedError(TradeError):
    status_code = 500
