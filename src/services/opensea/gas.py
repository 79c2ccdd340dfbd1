from __future__ import annotations

from .errors import GasPriceExceededError


def check_gas(current_gas_price: int, ceiling: int) -> None:
    # Advisory only: the price can still move before the transaction is mined.
    if current_gas_price > ceiling:
        raise GasPriceExceededError(current_gas_price, ceiling)
