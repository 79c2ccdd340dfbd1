from __future__ import annotations

from typing import Callable, NoReturn


class SniperError(RuntimeError):
    pass


class ConfigurationError(SniperError):
    pass


class QueryServiceError(SniperError):
    pass


class NoOrderFoundError(SniperError):
    pass


class InvalidOrderError(SniperError):
    pass


class GasPriceExceededError(SniperError):
    def __init__(self, current: int, ceiling: int) -> None:
        self.current = current
        self.ceiling = ceiling
        super().__init__(f"Gas price too high ({current} wei > {ceiling} wei)")


class TransactionFailedError(SniperError):
    def __init__(self, message: str, tx_hash: str = "") -> None:
        self.tx_hash = tx_hash
        super().__init__(message)


class ChainExecutionError(SniperError):
    pass


class OrderPostError(SniperError):
    pass


class AbortAndPropagate:
    """Log the failure under ``scope`` and re-raise it to the caller."""

    def __init__(self, scope: str, logger: Callable[[str, str], None]) -> None:
        self.scope = scope
        self.log = logger

    def handle(self, exc: BaseException, context: str) -> NoReturn:
        self.log(self.scope, f"{context} FAIL: {exc}")
        raise exc


class LogAndContinue:
    """Log the failure under ``scope`` and let the caller carry on.

    With ``brief`` only the exception class is logged, for failures whose
    detail was already logged further down.
    """

    def __init__(self, scope: str, logger: Callable[[str, str], None], brief: bool = False) -> None:
        self.scope = scope
        self.log = logger
        self.brief = brief

    def handle(self, exc: BaseException, context: str) -> None:
        detail = type(exc).__name__ if self.brief else str(exc)
        self.log(self.scope, f"{context} FAIL: {detail}")
