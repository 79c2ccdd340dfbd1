from __future__ import annotations

from typing import Any, Callable, Dict

from .console import log
from .errors import ChainExecutionError
from .models import ChainClient
from .strategy import format_eth


class PrerequisiteManager:
    """Keeps enough WETH and Seaport allowance in place before an offer is signed.

    Both checks only transact on a deficit and block until the transaction is
    confirmed. Any chain failure surfaces as ``ChainExecutionError``.
    """

    def __init__(
        self,
        *,
        chain: ChainClient,
        spender: str,
        confirmation_timeout: float,
        logger: Callable[[str, str], None] = log,
    ) -> None:
        self.chain = chain
        self.spender = spender
        self.confirmation_timeout = confirmation_timeout
        self.log = logger

    def _confirm(self, tx_hash: str, action: str) -> Dict[str, Any]:
        try:
            receipt = self.chain.wait(tx_hash, self.confirmation_timeout)
        except ChainExecutionError:
            raise
        except Exception as exc:
            raise ChainExecutionError(f"{action} tx {tx_hash} not confirmed: {exc}") from exc
        if int(receipt.get("status", 0)) == 0:
            raise ChainExecutionError(f"{action} tx {tx_hash} reverted")
        return receipt

    def ensure_funds(self, required: int) -> None:
        try:
            balance = self.chain.get_weth_balance()
        except Exception as exc:
            raise ChainExecutionError(f"WETH balance read failed: {exc}") from exc
        if balance >= required:
            return

        deficit = required - balance
        try:
            tx_hash = self.chain.deposit_weth(deficit)
        except Exception as exc:
            raise ChainExecutionError(f"WETH deposit failed: {exc}") from exc
        self._confirm(tx_hash, "wrap")
        self.log("chain", f"Wrapped {format_eth(deficit)} ETH to WETH tx={tx_hash}")

    def ensure_allowance(self, required: int) -> None:
        try:
            allowance = self.chain.get_weth_allowance(self.spender)
        except Exception as exc:
            raise ChainExecutionError(f"WETH allowance read failed: {exc}") from exc
        if allowance >= required:
            return

        try:
            tx_hash = self.chain.approve_weth(self.spender, required)
        except Exception as exc:
            raise ChainExecutionError(f"WETH approve failed: {exc}") from exc
        self._confirm(tx_hash, "approve")
        self.log("chain", f"Approved {format_eth(required)} WETH for {self.spender} tx={tx_hash}")
