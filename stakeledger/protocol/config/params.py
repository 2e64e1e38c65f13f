# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict, Optional

# Global Constants
DENOM = "stk"
DECIMALS = 18

BPS_DENOM = 10_000                 # withdrawal fee denominator (basis points)
RATE_DENOM = 100                   # annual reward rate denominator (percent)
SECONDS_PER_DAY = 86_400
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

class LedgerParams:
    """
    Creation-time configuration of a staking ledger.

    max_balance_per_user is given in whole tokens; the ledger enforces
    max_balance_per_user * 10**decimals base units (see effective_cap).
    """
    def __init__(self,
                 name: str,
                 lockup_duration: int,
                 max_balance_per_user: int,
                 annual_reward_rate: int,
                 withdrawal_fee_bps: int = 0,
                 decimals: int = DECIMALS,
                 # Bootstrap params
                 genesis_time: int = 0,
                 fee_recipient: Optional[str] = None):
        self.name = name
        self.lockup_duration = lockup_duration
        self.max_balance_per_user = max_balance_per_user
        self.annual_reward_rate = annual_reward_rate
        self.withdrawal_fee_bps = withdrawal_fee_bps
        self.decimals = decimals
        self.genesis_time = genesis_time
        self.fee_recipient = fee_recipient

    @property
    def effective_cap(self) -> int:
        return self.max_balance_per_user * 10**self.decimals

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "lockup_duration": self.lockup_duration,
            "max_balance_per_user": self.max_balance_per_user,
            "effective_cap": self.effective_cap,
            "annual_reward_rate": self.annual_reward_rate,
            "withdrawal_fee_bps": self.withdrawal_fee_bps,
            "decimals": self.decimals,
            "genesis_time": self.genesis_time,
            "fee_recipient": self.fee_recipient,
        }

PRESETS: Dict[str, LedgerParams] = {
    "devnet": LedgerParams(
        name="devnet",
        lockup_duration=3,
        max_balance_per_user=500,
        annual_reward_rate=500,
    ),
    "testnet": LedgerParams(
        name="testnet",
        lockup_duration=7 * SECONDS_PER_DAY,
        max_balance_per_user=100_000,
        annual_reward_rate=12,
        withdrawal_fee_bps=100,
    ),
    "mainnet": LedgerParams(
        name="mainnet",
        lockup_duration=30 * SECONDS_PER_DAY,
        max_balance_per_user=1_000_000,
        annual_reward_rate=8,
        withdrawal_fee_bps=50,
    ),
}

def get_preset(name: str) -> LedgerParams:
    if name not in PRESETS:
        raise ValueError(f"Unknown preset '{name}' (choose from {', '.join(sorted(PRESETS))})")
    return PRESETS[name]

# Selected by STAKELEDGER_PRESET, devnet by default
CURRENT_PRESET = get_preset(os.environ.get("STAKELEDGER_PRESET", "devnet"))
