# MIT License
# Copyright (c) 2025 Hashborn

"""
StakeLedger: token-staking accounting engine with lockup-gated exit fees
and linear time-proportional rewards.
"""

from .ledger.core.staking import StakingLedger, WithdrawalResult
from .ledger.core.asset import FungibleAssetLedger, InMemoryAssetLedger
from .ledger.core.host import LedgerHost, ManualClock, SystemClock
from .protocol.types.common import (
    OpType, StakingError, AuthorizationError, PolicyGateError, CapacityError,
    InsufficientBalanceError, ExternalTransferError, ConfigurationError,
    CallValidationError, LedgerInvariantError,
)

__version__ = "0.1.0"

__all__ = [
    "StakingLedger", "WithdrawalResult",
    "FungibleAssetLedger", "InMemoryAssetLedger",
    "LedgerHost", "ManualClock", "SystemClock",
    "OpType", "StakingError", "AuthorizationError", "PolicyGateError", "CapacityError",
    "InsufficientBalanceError", "ExternalTransferError", "ConfigurationError",
    "CallValidationError", "LedgerInvariantError",
]
