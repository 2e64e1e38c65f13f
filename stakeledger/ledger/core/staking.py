# MIT License
# Copyright (c) 2025 Hashborn

from dataclasses import dataclass
from typing import Callable, List, Optional
import logging
import threading
from ...protocol.types.account import GlobalConfig, LockEntry, StakeAccount
from ...protocol.types.common import (
    OpType, StakingError, PolicyGateError, CapacityError,
    InsufficientBalanceError, ConfigurationError, ExternalTransferError, LedgerInvariantError,
)
from ...protocol.config.params import BPS_DENOM, DECIMALS, LedgerParams
from ...protocol.crypto.addresses import module_address
from ...protocol.crypto.hash import canonical_hash, sha256
from ..observability import metrics
from .accounts import AccountBook, append_lock
from .admin import AdminControl
from .asset import FungibleAssetLedger
from .events import EventBus
from .fees import FeeEngine
from .rewards import RewardAccrualEngine

logger = logging.getLogger(__name__)


@dataclass
class WithdrawalResult:
    amount: int     # Principal removed from the account
    fee: int        # Sent to the fee recipient
    net: int        # Sent to the caller


class StakingLedger:
    """
    Staking accounting engine.

    Owns the account book and the global configuration and is the only
    component that moves tokens through the asset ledger. Every operation
    runs under one lock, evaluates all pre-conditions first and commits the
    account only after the external transfers succeeded.

    Time is always supplied by the caller as `now` (the committed
    timestamp of the host); the engine never reads the wall clock.
    """

    def __init__(self,
                 asset: FungibleAssetLedger,
                 owner: str,
                 fee_recipient: str,
                 max_balance_per_user: int,
                 lockup_duration: int,
                 annual_reward_rate: int,
                 withdrawal_fee_bps: int = 0,
                 decimals: int = DECIMALS,
                 custody_address: Optional[str] = None,
                 events: Optional[EventBus] = None,
                 preset: Optional[str] = None):
        if not owner:
            raise ConfigurationError("owner must not be empty")
        if not fee_recipient:
            raise ConfigurationError("fee_recipient must not be empty")
        if max_balance_per_user < 0:
            raise ConfigurationError("max_balance_per_user must be non-negative")
        if lockup_duration < 0:
            raise ConfigurationError("lockup_duration must be non-negative")
        if annual_reward_rate < 0:
            raise ConfigurationError("annual_reward_rate must be non-negative")
        if withdrawal_fee_bps < 0 or withdrawal_fee_bps > BPS_DENOM:
            raise ConfigurationError(f"withdrawal fee must be between 0 and {BPS_DENOM} bps")

        self.asset = asset
        self.config = GlobalConfig(
            owner=owner,
            asset_address=custody_address or module_address("staking"),
            fee_recipient=fee_recipient,
            # Cap is configured in whole tokens
            max_balance_per_user=max_balance_per_user * 10**decimals,
            lockup_duration=lockup_duration,
            annual_reward_rate=annual_reward_rate,
            withdrawal_fee_bps=withdrawal_fee_bps,
            preset=preset,
        )
        self.book = AccountBook()
        self.admin = AdminControl(self.config)
        self.rewards = RewardAccrualEngine(annual_reward_rate)
        self.fees = FeeEngine(lockup_duration)
        self.events = events or EventBus()
        self._lock = threading.RLock()

        logger.info(
            f"Staking ledger created: owner={owner} cap={self.config.max_balance_per_user} "
            f"lockup={lockup_duration}s rate={annual_reward_rate}% fee={withdrawal_fee_bps}bps"
        )

    @classmethod
    def from_params(cls, asset: FungibleAssetLedger, owner: str, params: LedgerParams,
                    fee_recipient: Optional[str] = None, events: Optional[EventBus] = None) -> 'StakingLedger':
        return cls(
            asset=asset,
            owner=owner,
            fee_recipient=fee_recipient or params.fee_recipient or owner,
            max_balance_per_user=params.max_balance_per_user,
            lockup_duration=params.lockup_duration,
            annual_reward_rate=params.annual_reward_rate,
            withdrawal_fee_bps=params.withdrawal_fee_bps,
            decimals=params.decimals,
            events=events,
            preset=params.name,
        )

    @property
    def custody(self) -> str:
        return self.config.asset_address

    # --- Operation wrapper ---
    def _run(self, op_type: OpType, impl: Callable, *args):
        with self._lock:
            try:
                result = impl(*args)
            except StakingError as e:
                metrics.record_failure(op_type.value, e)
                logger.warning(f"{op_type.value} rejected: {e}")
                raise
            metrics.operations_total.labels(op_type=op_type.value).inc()
            metrics.update_metrics(self)
            return result

    # --- Admin operations ---
    def start_staking(self, caller: str):
        def impl():
            self.admin.start_staking(caller)
            self.events.emit('config_changed', field='staking_started', value=True)
        self._run(OpType.START_STAKING, impl)

    def pause(self, caller: str):
        def impl():
            self.admin.pause(caller)
            self.events.emit('config_changed', field='paused', value=True)
        self._run(OpType.PAUSE, impl)

    def unpause(self, caller: str):
        def impl():
            self.admin.unpause(caller)
            self.events.emit('config_changed', field='paused', value=False)
        self._run(OpType.UNPAUSE, impl)

    def set_withdrawal_fee(self, caller: str, bps: int):
        def impl():
            self.admin.set_withdrawal_fee(caller, bps)
            self.events.emit('config_changed', field='withdrawal_fee_bps', value=bps)
        self._run(OpType.SET_WITHDRAWAL_FEE, impl)

    def transfer_ownership(self, caller: str, new_owner: str):
        def impl():
            self.admin.transfer_ownership(caller, new_owner)
            self.events.emit('config_changed', field='owner', value=new_owner)
        self._run(OpType.TRANSFER_OWNERSHIP, impl)

    # --- User operations ---
    def deposit(self, caller: str, amount: int, now: int):
        self._run(OpType.DEPOSIT, self._deposit_impl, caller, amount, now)

    def withdraw(self, caller: str, amount: int, now: int) -> WithdrawalResult:
        return self._run(OpType.WITHDRAW, self._withdraw_impl, caller, amount, now)

    def withdraw_all(self, caller: str, now: int) -> WithdrawalResult:
        def impl():
            return self._withdraw_impl(caller, self.balance_of(caller), now)
        return self._run(OpType.WITHDRAW_ALL, impl)

    def claim(self, caller: str, now: int) -> int:
        return self._run(OpType.CLAIM, self._claim_impl, caller, now)

    def fund_rewards(self, caller: str, amount: int, now: int):
        self._run(OpType.FUND_REWARDS, self._fund_rewards_impl, caller, amount, now)

    def _deposit_impl(self, caller: str, amount: int, now: int):
        if not self.config.staking_started:
            raise PolicyGateError("staking not started")
        if self.config.paused:
            raise PolicyGateError("paused")
        if amount <= 0:
            raise InsufficientBalanceError(f"deposit amount must be positive, got {amount}")

        acc = self.book.get_account(caller)
        self.rewards.settle(acc, now)

        if acc.principal + amount > self.config.max_balance_per_user:
            raise CapacityError(
                f"balance cap exceeded: {acc.principal} + {amount} > {self.config.max_balance_per_user}"
            )

        # Propagates ExternalTransferError; acc is a working copy, nothing committed yet
        self.asset.transfer_from(self.custody, caller, self.custody, amount)

        append_lock(acc, amount, now)
        self._commit(acc)

        logger.info(f"Deposit: {caller} +{amount} (principal {acc.principal})")
        metrics.deposit_volume_total.inc(amount)
        self.events.emit('deposited', address=caller, amount=amount, principal=acc.principal, timestamp=now)

    def _withdraw_impl(self, caller: str, amount: int, now: int) -> WithdrawalResult:
        principal = self.balance_of(caller)
        if amount <= 0 or amount > principal:
            raise InsufficientBalanceError(
                f"insufficient staked balance: have {principal}, requested {amount}"
            )

        acc = self.book.get_account(caller)
        self.rewards.settle(acc, now)

        fee, residual = self.fees.compute_fee(amount, acc.lock_queue, now, self.config.withdrawal_fee_bps)
        net = amount - fee

        acc.principal -= amount
        acc.lock_queue = residual

        if net > 0:
            self.asset.transfer(self.custody, caller, net)
        if fee > 0:
            try:
                self.asset.transfer(self.custody, self.config.fee_recipient, fee)
            except ExternalTransferError:
                # Nothing is committed yet; take the payout back so custody
                # still backs the unchanged principal
                if net > 0:
                    self.asset.transfer(caller, self.custody, net)
                raise

        self._commit(acc)

        logger.info(f"Withdraw: {caller} -{amount} (fee {fee}, net {net}, principal {acc.principal})")
        metrics.withdrawal_volume_total.inc(amount)
        metrics.withdrawal_fee_ratio.observe(fee / amount)
        if fee:
            metrics.fees_collected_total.inc(fee)
        self.events.emit(
            'withdrawn', address=caller, amount=amount, fee=fee, net=net,
            principal=acc.principal, timestamp=now,
        )
        return WithdrawalResult(amount=amount, fee=fee, net=net)

    def _claim_impl(self, caller: str, now: int) -> int:
        acc = self.book.get_account(caller)
        self.rewards.settle(acc, now)

        reward = acc.accrued_reward
        if reward == 0:
            raise InsufficientBalanceError("no reward to claim")
        reserve = self.reward_reserve()
        if reserve < reward:
            raise InsufficientBalanceError(f"insufficient reward reserve: have {reserve}, need {reward}")

        self.asset.transfer(self.custody, caller, reward)

        acc.accrued_reward = 0
        self._commit(acc)

        logger.info(f"Claim: {caller} received {reward}")
        metrics.rewards_claimed_total.inc(reward)
        self.events.emit('reward_claimed', address=caller, amount=reward, timestamp=now)
        return reward

    def _fund_rewards_impl(self, caller: str, amount: int, now: int):
        if self.config.paused:
            raise PolicyGateError("paused")
        if amount <= 0:
            raise InsufficientBalanceError(f"funding amount must be positive, got {amount}")

        self.asset.transfer_from(self.custody, caller, self.custody, amount)

        reserve = self.reward_reserve()
        logger.info(f"Reward reserve funded by {caller}: +{amount} (reserve {reserve})")
        self.events.emit('rewards_funded', funder=caller, amount=amount, reserve=reserve, timestamp=now)

    def _commit(self, acc: StakeAccount):
        if acc.locked_total() != acc.principal:
            raise LedgerInvariantError(
                f"lock queue of {acc.address} tracks {acc.locked_total()} but principal is {acc.principal}"
            )
        self.book.set_account(acc)

    # --- Read-only queries ---
    def claimable(self, address: str, now: int) -> int:
        with self._lock:
            acc = self.book.peek(address)
            if acc is None:
                return 0
            return self.rewards.claimable(acc, now)

    def balance_of(self, address: str) -> int:
        with self._lock:
            acc = self.book.peek(address)
            return acc.principal if acc else 0

    def withdrawal_fee(self) -> int:
        return self.config.withdrawal_fee_bps

    def owner(self) -> str:
        return self.config.owner

    def total_staked(self) -> int:
        with self._lock:
            return self.book.total_principal()

    def reward_reserve(self) -> int:
        """Custody balance that does not back principal."""
        with self._lock:
            return self.asset.balance_of(self.custody) - self.book.total_principal()

    def lock_entries(self, address: str) -> List[LockEntry]:
        with self._lock:
            acc = self.book.peek(address)
            return [e.model_copy() for e in acc.lock_queue] if acc else []

    def unlocked_balance(self, address: str, now: int) -> int:
        with self._lock:
            acc = self.book.peek(address)
            return self.fees.unlocked_amount(acc.lock_queue, now) if acc else 0

    def estimate_withdrawal_fee(self, address: str, amount: int, now: int) -> int:
        with self._lock:
            principal = self.balance_of(address)
            if amount <= 0 or amount > principal:
                raise InsufficientBalanceError(
                    f"insufficient staked balance: have {principal}, requested {amount}"
                )
            return self.fees.preview_fee(amount, self.book.peek(address).lock_queue, now,
                                         self.config.withdrawal_fee_bps)

    def state_root(self) -> str:
        """Hash over configuration and every account; changes iff state changes."""
        with self._lock:
            config_hash = canonical_hash(self.config.model_dump())
            return sha256(config_hash + bytes.fromhex(self.book.compute_root())).hex()

    # --- Snapshots (host rollback) ---
    def snapshot(self) -> tuple:
        with self._lock:
            return self.config.model_copy(), self.book.clone()

    def restore(self, snapshot: tuple):
        with self._lock:
            config, book = snapshot
            # AdminControl holds a reference to the same config object
            for field, value in config.model_dump().items():
                setattr(self.config, field, value)
            self.book = book
