# MIT License
# Copyright (c) 2025 Hashborn

from typing import Dict, List, Optional
from ...protocol.types.account import StakeAccount, LockEntry
from ...protocol.crypto.hash import sha256, merkle_root


class AccountBook:
    def __init__(self, accounts: Optional[Dict[str, StakeAccount]] = None):
        # address -> StakeAccount, only accounts that ever deposited
        self._accounts: Dict[str, StakeAccount] = accounts if accounts is not None else {}

    def clone(self) -> 'AccountBook':
        """Creates a deep copy of the book (for rollback)."""
        return AccountBook({k: v.model_copy(deep=True) for k, v in self._accounts.items()})

    def get_account(self, address: str) -> StakeAccount:
        """
        Returns a working copy of the account.

        Accounts are created lazily: an unknown address yields a fresh, empty
        account that is not stored until set_account() commits it.
        """
        acc = self._accounts.get(address)
        if acc is None:
            return StakeAccount(address=address)
        return acc.model_copy(deep=True)

    def peek(self, address: str) -> Optional[StakeAccount]:
        """Read-only access to the committed account, None if unknown."""
        return self._accounts.get(address)

    def set_account(self, account: StakeAccount):
        """Commits an account."""
        self._accounts[account.address] = account

    def addresses(self) -> List[str]:
        return sorted(self._accounts.keys())

    def total_principal(self) -> int:
        return sum(acc.principal for acc in self._accounts.values())

    def total_accrued(self) -> int:
        return sum(acc.accrued_reward for acc in self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

    def compute_root(self) -> str:
        """Merkle root over every committed account, sorted by address."""
        leaves = []
        for addr in self.addresses():
            acc = self._accounts[addr]
            queue = ",".join(f"{e.amount}@{e.deposited_at}" for e in acc.lock_queue)
            leaf_data = (
                addr
                + str(acc.principal)
                + str(acc.accrued_reward)
                + str(acc.last_settlement)
                + queue
            ).encode("utf-8")
            leaves.append(sha256(leaf_data))

        if not leaves:
            return sha256(b"").hex()
        return merkle_root(leaves).hex()


def append_lock(account: StakeAccount, amount: int, now: int):
    """Records a new deposit chunk at the back of the queue."""
    account.lock_queue.append(LockEntry(amount=amount, deposited_at=now))
    account.principal += amount
