# MIT License
# Copyright (c) 2025 Hashborn

from typing import List, Tuple
import logging
from ...protocol.types.account import LockEntry
from ...protocol.types.common import LedgerInvariantError
from ...protocol.config.params import BPS_DENOM

logger = logging.getLogger(__name__)


class FeeEngine:
    """
    Exit fee over a lock queue.

    Withdrawals consume the queue oldest first. The part taken from an entry
    older than the lockup window is fee-exempt; the rest is charged
    fee_rate_bps / BPS_DENOM, floored once over the liable total.
    """

    def __init__(self, lockup_duration: int):
        if lockup_duration < 0:
            raise ValueError("lockup_duration must be non-negative")
        self.lockup_duration = lockup_duration

    def split(self, amount: int, lock_queue: List[LockEntry], now: int) -> Tuple[int, int, List[LockEntry]]:
        """
        Consumes `amount` from the queue.

        Returns:
            (exempt, liable, residual_queue). The input queue is left untouched.
        """
        total = sum(entry.amount for entry in lock_queue)
        if amount > total:
            raise LedgerInvariantError(f"withdrawal of {amount} exceeds tracked deposits {total}")

        remaining = amount
        exempt = 0
        liable = 0
        residual: List[LockEntry] = []

        for entry in lock_queue:
            if remaining == 0:
                residual.append(entry.model_copy())
                continue

            take = min(entry.amount, remaining)
            remaining -= take
            if entry.is_unlocked(now, self.lockup_duration):
                exempt += take
            else:
                liable += take

            if take < entry.amount:
                residual.append(LockEntry(amount=entry.amount - take, deposited_at=entry.deposited_at))

        return exempt, liable, residual

    def compute_fee(self, amount: int, lock_queue: List[LockEntry], now: int, fee_rate_bps: int) -> Tuple[int, List[LockEntry]]:
        """Returns (fee, residual_queue) for withdrawing `amount`."""
        exempt, liable, residual = self.split(amount, lock_queue, now)
        fee = liable * fee_rate_bps // BPS_DENOM
        logger.debug(f"Fee for {amount}: exempt={exempt} liable={liable} fee={fee}")
        return fee, residual

    def preview_fee(self, amount: int, lock_queue: List[LockEntry], now: int, fee_rate_bps: int) -> int:
        fee, _ = self.compute_fee(amount, lock_queue, now, fee_rate_bps)
        return fee

    def unlocked_amount(self, lock_queue: List[LockEntry], now: int) -> int:
        """Amount that can currently leave the queue without fee."""
        return sum(e.amount for e in lock_queue if e.is_unlocked(now, self.lockup_duration))
