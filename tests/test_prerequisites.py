from typing import Dict, List, Tuple

import pytest

from src.services.opensea.errors import ChainExecutionError, TransactionFailedError
from src.services.opensea.prerequisites import PrerequisiteManager

SEAPORT = "0x00000000000001ad428e4906aE43D8F9852d0dD6"


class StubWethChain:
    def __init__(self, balance: int = 0, allowance: int = 0, status: int = 1) -> None:
        self.balance = balance
        self.allowance = allowance
        self.status = status
        self.deposits: List[int] = []
        self.approvals: List[Tuple[str, int]] = []
        self.waited: List[str] = []
        self._pending: Dict[str, Tuple[str, int]] = {}

    @property
    def address(self) -> str:
        return "0x19E7E376E7C213B7E7e7e46cc70A5dD086DAff2A"

    def get_weth_balance(self) -> int:
        return self.balance

    def get_weth_allowance(self, spender: str) -> int:
        return self.allowance

    def deposit_weth(self, amount: int) -> str:
        self.deposits.append(amount)
        tx_hash = f"0xdeposit{len(self.deposits)}"
        self._pending[tx_hash] = ("deposit", amount)
        return tx_hash

    def approve_weth(self, spender: str, amount: int) -> str:
        self.approvals.append((spender, amount))
        tx_hash = f"0xapprove{len(self.approvals)}"
        self._pending[tx_hash] = ("approve", amount)
        return tx_hash

    def wait(self, tx_hash: str, timeout: float) -> dict:
        self.waited.append(tx_hash)
        kind, amount = self._pending.pop(tx_hash)
        if self.status == 1:
            if kind == "deposit":
                self.balance += amount
            else:
                self.allowance = amount
        return {"status": self.status, "transactionHash": tx_hash}


def _manager(chain: StubWethChain, logs: List[str]) -> PrerequisiteManager:
    return PrerequisiteManager(
        chain=chain,
        spender=SEAPORT,
        confirmation_timeout=5.0,
        logger=lambda scope, msg: logs.append(msg),
    )


def test_ensure_funds_wraps_exact_deficit_once() -> None:
    chain = StubWethChain(balance=300)
    logs: List[str] = []
    manager = _manager(chain, logs)

    manager.ensure_funds(1000)
    manager.ensure_funds(1000)

    assert chain.deposits == [700]
    assert chain.waited == ["0xdeposit1"]
    assert chain.balance == 1000
    assert any("Wrapped" in line for line in logs)


def test_ensure_funds_is_noop_with_enough_balance() -> None:
    chain = StubWethChain(balance=5000)
    _manager(chain, []).ensure_funds(1000)
    assert chain.deposits == []


def test_ensure_allowance_is_noop_when_sufficient() -> None:
    chain = StubWethChain(allowance=1000)
    _manager(chain, []).ensure_allowance(1000)
    assert chain.approvals == []


def test_ensure_allowance_approves_required_amount() -> None:
    chain = StubWethChain(allowance=10)
    manager = _manager(chain, [])
    manager.ensure_allowance(1000)
    manager.ensure_allowance(1000)
    assert chain.approvals == [(SEAPORT, 1000)]
    assert chain.waited == ["0xapprove1"]


def test_reverted_wrap_raises_chain_execution_error() -> None:
    chain = StubWethChain(balance=0, status=0)
    with pytest.raises(ChainExecutionError):
        _manager(chain, []).ensure_funds(1000)


def test_confirmation_timeout_becomes_chain_execution_error() -> None:
    class TimeoutChain(StubWethChain):
        def wait(self, tx_hash: str, timeout: float) -> dict:
            raise TransactionFailedError(f"Transaction {tx_hash} not confirmed", tx_hash)

    with pytest.raises(ChainExecutionError):
        _manager(TimeoutChain(allowance=0), []).ensure_allowance(1000)


def test_submission_failure_becomes_chain_execution_error() -> None:
    class BrokenChain(StubWethChain):
        def deposit_weth(self, amount: int) -> str:
            raise ValueError("insufficient funds for gas * price + value")

    with pytest.raises(ChainExecutionError) as exc_info:
        _manager(BrokenChain(balance=0), []).ensure_funds(1000)
    assert "insufficient funds" in str(exc_info.value)
