# MIT License
# Copyright (c) 2025 Hashborn

"""
Fungible asset ledger.

The staking ledger only ever talks to the token through the
FungibleAssetLedger interface. InMemoryAssetLedger is the in-process
stand-in used by the host, the simulator and the tests; a production
deployment plugs in a client for the real token instead.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple
import logging
from pydantic import BaseModel
from ...protocol.types.common import ExternalTransferError

logger = logging.getLogger(__name__)


class FungibleAssetLedger(ABC):
    """
    Money-movement primitives required from the external token.

    Both transfer methods must be atomic and raise ExternalTransferError on
    insufficient balance or allowance.
    """

    @abstractmethod
    def transfer(self, sender: str, to: str, amount: int) -> None:
        ...

    @abstractmethod
    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        ...

    @abstractmethod
    def approve(self, owner: str, spender: str, amount: int) -> None:
        ...

    @abstractmethod
    def balance_of(self, address: str) -> int:
        ...

    @abstractmethod
    def allowance(self, owner: str, spender: str) -> int:
        ...


class TokenAccount(BaseModel):
    address: str
    balance: int = 0


class InMemoryAssetLedger(FungibleAssetLedger):
    def __init__(self, alloc: Optional[Dict[str, int]] = None, symbol: str = "STK"):
        self.symbol = symbol
        self._accounts: Dict[str, TokenAccount] = {}
        # (owner, spender) -> remaining allowance
        self._allowances: Dict[Tuple[str, str], int] = {}
        self.total_supply = 0

        for address, amount in (alloc or {}).items():
            acc = self.get_account(address)
            acc.balance += int(amount)
            self.set_account(acc)
            self.total_supply += int(amount)
        if alloc:
            logger.info(f"Applied genesis allocation to {len(alloc)} accounts.")

    def get_account(self, address: str) -> TokenAccount:
        if address in self._accounts:
            return self._accounts[address]
        return TokenAccount(address=address)

    def set_account(self, account: TokenAccount):
        self._accounts[account.address] = account

    # --- FungibleAssetLedger ---
    def balance_of(self, address: str) -> int:
        return self.get_account(address).balance

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise ExternalTransferError("approve amount must be non-negative")
        self._allowances[(owner, spender)] = amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(sender, to, amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise ExternalTransferError(
                f"insufficient allowance: {owner} approved {allowed} to {spender}, need {amount}"
            )
        self._move(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        if amount <= 0:
            raise ExternalTransferError(f"transfer amount must be positive, got {amount}")
        src = self.get_account(sender)
        if src.balance < amount:
            raise ExternalTransferError(
                f"insufficient balance: {sender} has {src.balance}, need {amount}"
            )
        src.balance -= amount
        self.set_account(src)

        dst = self.get_account(to)
        dst.balance += amount
        self.set_account(dst)

    # --- Snapshots (host rollback) ---
    def clone(self) -> 'InMemoryAssetLedger':
        """Creates a copy of the token state (for rollback)."""
        cloned = InMemoryAssetLedger(symbol=self.symbol)
        cloned._accounts = {k: v.model_copy() for k, v in self._accounts.items()}
        cloned._allowances = dict(self._allowances)
        cloned.total_supply = self.total_supply
        return cloned

    def restore(self, snapshot: 'InMemoryAssetLedger'):
        self._accounts = {k: v.model_copy() for k, v in snapshot._accounts.items()}
        self._allowances = dict(snapshot._allowances)
        self.total_supply = snapshot.total_supply
