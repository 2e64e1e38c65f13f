# MIT License
# Copyright (c) 2025 Hashborn

from ...protocol.types.account import StakeAccount
from ...protocol.types.common import LedgerInvariantError
from ...protocol.config.params import RATE_DENOM, SECONDS_PER_YEAR


def calculate_reward(principal: int, annual_reward_rate: int, elapsed: int) -> int:
    """
    Linear reward earned by `principal` over `elapsed` seconds.

    All multiplications happen before the single floor division:
        principal * rate * elapsed // (RATE_DENOM * SECONDS_PER_YEAR)

    Args:
        principal: Staked amount in base units
        annual_reward_rate: Annual rate in percent
        elapsed: Seconds since last settlement

    Returns:
        Reward in base units
    """
    if principal <= 0 or elapsed <= 0 or annual_reward_rate <= 0:
        return 0
    return principal * annual_reward_rate * elapsed // (RATE_DENOM * SECONDS_PER_YEAR)


class RewardAccrualEngine:
    def __init__(self, annual_reward_rate: int):
        if annual_reward_rate < 0:
            raise ValueError("annual_reward_rate must be non-negative")
        self.annual_reward_rate = annual_reward_rate

    def pending(self, account: StakeAccount, now: int) -> int:
        """Reward earned since last settlement, not yet banked."""
        if now < account.last_settlement:
            raise LedgerInvariantError(
                f"time went backwards for {account.address}: "
                f"now={now} < last_settlement={account.last_settlement}"
            )
        return calculate_reward(account.principal, self.annual_reward_rate, now - account.last_settlement)

    def settle(self, account: StakeAccount, now: int) -> int:
        """
        Banks the pending reward and moves last_settlement to now.

        Must run before any change to principal so the old balance is paid for
        the elapsed interval and the new balance only earns from now on.
        Returns the amount banked.
        """
        delta = self.pending(account, now)
        account.accrued_reward += delta
        account.last_settlement = now
        return delta

    def claimable(self, account: StakeAccount, now: int) -> int:
        return account.accrued_reward + self.pending(account, now)
