# MIT License
# Copyright (c) 2025 Hashborn

from pydantic import BaseModel, Field
from typing import List, Optional


class LockEntry(BaseModel):
    """One deposit chunk, tracked until fully withdrawn for fee purposes."""
    amount: int             # Remaining un-withdrawn amount of the deposit
    deposited_at: int       # Committed timestamp of the deposit

    def is_unlocked(self, now: int, lockup_duration: int) -> bool:
        return now - self.deposited_at >= lockup_duration


class StakeAccount(BaseModel):
    address: str
    principal: int = 0                # Currently staked amount
    accrued_reward: int = 0           # Settled, not yet claimed reward
    last_settlement: int = 0          # Timestamp of last reward settlement

    # Oldest first; sum(amount) == principal between operations
    lock_queue: List[LockEntry] = Field(default_factory=list)

    def locked_total(self) -> int:
        return sum(entry.amount for entry in self.lock_queue)


class GlobalConfig(BaseModel):
    owner: str
    asset_address: str                # Ledger custody address in the asset ledger
    fee_recipient: str
    max_balance_per_user: int         # Effective cap in base units
    lockup_duration: int              # Seconds
    annual_reward_rate: int           # Percent, see RATE_DENOM

    withdrawal_fee_bps: int = 0       # Owner-mutable
    staking_started: bool = False
    paused: bool = False

    # Optional label of the preset the ledger was built from
    preset: Optional[str] = None
