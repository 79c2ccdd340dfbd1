from __future__ import annotations

from typing import Any, Dict, List, Optional

from eth_account import Account
from eth_account.messages import encode_typed_data
from web3 import Web3
from web3.exceptions import TimeExhausted

from .abi import WETH_ABI
from .errors import TransactionFailedError


class Web3ChainClient:
    """Single-wallet chain access: signing, submission, receipts and WETH calls."""

    def __init__(
        self,
        *,
        rpc_url: str,
        private_key: str,
        weth_address: str,
        request_timeout: float = 10.0,
        web3: Optional[Web3] = None,
    ) -> None:
        self.w3 = web3 or Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout}))
        self.account = Account.from_key(private_key)
        self.weth = self.contract(weth_address, WETH_ABI)
        self._chain_id: Optional[int] = None

    @property
    def address(self) -> str:
        return self.account.address

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(self.w3.eth.chain_id)
        return self._chain_id

    def contract(self, address: str, abi: List[Dict[str, Any]]) -> Any:
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def get_gas_price(self) -> int:
        return int(self.w3.eth.gas_price)

    def send_transaction(self, tx: Dict[str, Any]) -> str:
        prepared = dict(tx)
        prepared["from"] = self.address
        if prepared.get("to"):
            prepared["to"] = Web3.to_checksum_address(prepared["to"])
        prepared.setdefault("value", 0)
        prepared.setdefault("chainId", self.chain_id)
        prepared.setdefault("nonce", self.w3.eth.get_transaction_count(self.address, "pending"))
        if "gasPrice" not in prepared and "maxFeePerGas" not in prepared:
            prepared["gasPrice"] = self.get_gas_price()
        if "gas" not in prepared:
            prepared["gas"] = self.w3.eth.estimate_gas(prepared)

        signed = self.account.sign_transaction(prepared)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    def wait(self, tx_hash: str, timeout: float) -> Dict[str, Any]:
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
        except TimeExhausted as exc:
            raise TransactionFailedError(
                f"Transaction {tx_hash} not confirmed within {timeout:.0f}s", tx_hash
            ) from exc
        return dict(receipt)

    def sign_typed_data(self, typed_data: Dict[str, Any]) -> str:
        signed = self.account.sign_message(encode_typed_data(full_message=typed_data))
        return "0x" + bytes(signed.signature).hex()

    def get_weth_balance(self) -> int:
        return int(self.weth.functions.balanceOf(self.address).call())

    def get_weth_allowance(self, spender: str) -> int:
        return int(
            self.weth.functions.allowance(self.address, Web3.to_checksum_address(spender)).call()
        )

    def deposit_weth(self, amount: int) -> str:
        tx = self.weth.functions.deposit().build_transaction(
            {"from": self.address, "value": int(amount)}
        )
        return self.send_transaction(tx)

    def approve_weth(self, spender: str, amount: int) -> str:
        tx = self.weth.functions.approve(
            Web3.to_checksum_address(spender), int(amount)
        ).build_transaction({"from": self.address})
        return self.send_transaction(tx)
