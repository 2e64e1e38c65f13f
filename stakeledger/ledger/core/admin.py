# MIT License
# Copyright (c) 2025 Hashborn

import logging
from ...protocol.types.account import GlobalConfig
from ...protocol.types.common import AuthorizationError, PolicyGateError, ConfigurationError
from ...protocol.config.params import BPS_DENOM

logger = logging.getLogger(__name__)


class AdminControl:
    """Owner gate over the mutable part of GlobalConfig."""

    def __init__(self, config: GlobalConfig):
        self.config = config

    def require_owner(self, caller: str):
        if caller != self.config.owner:
            raise AuthorizationError(f"caller {caller} is not the owner")

    def start_staking(self, caller: str):
        self.require_owner(caller)
        if self.config.staking_started:
            raise PolicyGateError("staking already started")
        self.config.staking_started = True
        logger.info("Staking started")

    def pause(self, caller: str):
        self.require_owner(caller)
        if self.config.paused:
            raise PolicyGateError("already paused")
        self.config.paused = True
        logger.info("Ledger paused")

    def unpause(self, caller: str):
        self.require_owner(caller)
        if not self.config.paused:
            raise PolicyGateError("not paused")
        self.config.paused = False
        logger.info("Ledger unpaused")

    def set_withdrawal_fee(self, caller: str, bps: int):
        self.require_owner(caller)
        if bps < 0 or bps > BPS_DENOM:
            raise ConfigurationError(f"withdrawal fee must be between 0 and {BPS_DENOM} bps, got {bps}")
        old = self.config.withdrawal_fee_bps
        self.config.withdrawal_fee_bps = bps
        logger.info(f"Withdrawal fee changed: {old} -> {bps} bps")

    def transfer_ownership(self, caller: str, new_owner: str):
        self.require_owner(caller)
        if not new_owner:
            raise ConfigurationError("new owner must not be empty")
        self.config.owner = new_owner
        logger.info(f"Ownership transferred: {caller} -> {new_owner}")
