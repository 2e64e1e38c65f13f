# MIT License
# Copyright (c) 2025 Hashborn

from enum import Enum


class OpType(str, Enum):
    # Owner-only configuration
    START_STAKING = "START_STAKING"
    PAUSE = "PAUSE"
    UNPAUSE = "UNPAUSE"
    SET_WITHDRAWAL_FEE = "SET_WITHDRAWAL_FEE"
    TRANSFER_OWNERSHIP = "TRANSFER_OWNERSHIP"

    # User operations
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
    WITHDRAW_ALL = "WITHDRAW_ALL"
    CLAIM = "CLAIM"
    FUND_REWARDS = "FUND_REWARDS"


class StakingError(Exception):
    """Base class for every user-facing ledger failure."""
    pass

class AuthorizationError(StakingError):
    pass

class PolicyGateError(StakingError):
    pass

class CapacityError(StakingError):
    pass

class InsufficientBalanceError(StakingError):
    pass

class ExternalTransferError(StakingError):
    """Raised by the fungible-asset ledger; propagated unmodified."""
    pass

class ConfigurationError(StakingError):
    pass

class CallValidationError(StakingError):
    """Signature, nonce or dispatch failure of a submitted call."""
    pass


class LedgerInvariantError(RuntimeError):
    """Internal bookkeeping went out of sync. Never a user error."""
    pass
