# MIT License
# Copyright (c) 2025 Hashborn

"""
In-process host execution environment.

Delivers signed calls to a StakingLedger one at a time, stamps each with
the committed timestamp and makes every call all-or-nothing by restoring
ledger and token snapshots when the operation fails.
"""
from typing import Any, Dict, Optional
import logging
import threading
import time
from ...protocol.types.call import Call
from ...protocol.types.common import OpType, StakingError, CallValidationError
from ...protocol.crypto.addresses import address_from_pubkey, decode_address
from ...protocol.crypto.keys import verify
from ..observability import metrics
from .asset import FungibleAssetLedger
from .receipts import CallReceipt, ReceiptStore
from .staking import StakingLedger

logger = logging.getLogger(__name__)


class SystemClock:
    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Deterministic clock for simulations and tests."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(f"clock cannot move backwards: {timestamp} < {self._now}")
        self._now = timestamp
        return self._now


# Read-only queries and whether they need the committed timestamp
QUERIES = {
    "claimable": True,
    "balance_of": False,
    "withdrawal_fee": False,
    "owner": False,
    "total_staked": False,
    "reward_reserve": False,
    "lock_entries": False,
    "unlocked_balance": True,
    "estimate_withdrawal_fee": True,
    "state_root": False,
}


class LedgerHost:
    def __init__(self, ledger: StakingLedger, clock=None, receipts: Optional[ReceiptStore] = None):
        self.ledger = ledger
        self.asset: FungibleAssetLedger = ledger.asset
        self.clock = clock or SystemClock()
        self.receipts = receipts or ReceiptStore()
        self._lock = threading.RLock()

        self.nonces: Dict[str, int] = {}
        self.sequence = 0
        self.last_timestamp = 0

    def get_nonce(self, address: str) -> int:
        with self._lock:
            return self.nonces.get(address, 0)

    def committed_time(self) -> int:
        """Current committed timestamp; never earlier than the previous call."""
        return max(self.clock.now(), self.last_timestamp)

    # --- Calls ---
    def submit(self, call: Call) -> CallReceipt:
        """
        Verifies and executes one call.

        Returns a receipt; StakingError failures never escape. Anything else
        (an invariant violation) is re-raised after the state is restored.
        """
        with self._lock:
            call_hash = call.hash()

            try:
                self._verify(call)
            except CallValidationError as e:
                logger.warning(f"Rejected call {call_hash[:16]}...: {e}")
                metrics.record_failure(call.op_type.value, e)
                receipt = CallReceipt(
                    call_hash=call_hash, op_type=call.op_type.value, caller=call.caller,
                    status='failed', timestamp=self.committed_time(),
                    error=f"{type(e).__name__}: {e}",
                )
                # A replay must not overwrite the receipt of the ordered original
                existing = self.receipts.get(call_hash)
                if existing is None or existing.sequence is None:
                    self.receipts.add(receipt)
                self.ledger.events.emit('call_failed', receipt=receipt)
                return receipt

            now = self.committed_time()
            ledger_snapshot = self.ledger.snapshot()
            asset_snapshot = self.asset.clone() if hasattr(self.asset, "clone") else None

            # Ordered calls consume the nonce even when the operation fails
            self.nonces[call.caller] = call.nonce + 1
            self.sequence += 1
            self.last_timestamp = now

            receipt = CallReceipt(
                call_hash=call_hash, op_type=call.op_type.value, caller=call.caller,
                status='applied', sequence=self.sequence, timestamp=now,
            )
            try:
                receipt.result = self._dispatch(call, now)
            except StakingError as e:
                self._rollback(ledger_snapshot, asset_snapshot)
                receipt.status = 'failed'
                receipt.error = f"{type(e).__name__}: {e}"
                self.receipts.add(receipt)
                self.ledger.events.emit('call_failed', receipt=receipt)
                return receipt
            except Exception:
                self._rollback(ledger_snapshot, asset_snapshot)
                logger.error(f"Call {call_hash[:16]}... aborted by internal error", exc_info=True)
                raise

            self.receipts.add(receipt)
            logger.debug(f"Applied call #{self.sequence} {call.op_type.value} from {call.caller}")
            self.ledger.events.emit('call_applied', receipt=receipt)
            return receipt

    def _rollback(self, ledger_snapshot, asset_snapshot):
        self.ledger.restore(ledger_snapshot)
        if asset_snapshot is not None:
            self.asset.restore(asset_snapshot)

    def _verify(self, call: Call):
        if not call.signature or not call.pub_key:
            raise CallValidationError("Missing signature or pub_key")

        try:
            prefix, _ = decode_address(call.caller)
            derived = address_from_pubkey(bytes.fromhex(call.pub_key), prefix=prefix)
        except ValueError as e:
            raise CallValidationError(f"Invalid address format or key: {e}")
        if derived != call.caller:
            raise CallValidationError(f"pub_key mismatch: derived {derived}, expected {call.caller}")

        try:
            sig_bytes = bytes.fromhex(call.signature)
        except ValueError:
            raise CallValidationError("Signature is not hex")
        if not verify(bytes.fromhex(call.hash()), sig_bytes, bytes.fromhex(call.pub_key)):
            raise CallValidationError("Invalid signature")

        expected = self.nonces.get(call.caller, 0)
        if call.nonce != expected:
            raise CallValidationError(f"Invalid nonce: expected {expected}, got {call.nonce}")

    def _dispatch(self, call: Call, now: int) -> Dict[str, Any]:
        ledger = self.ledger
        caller = call.caller

        if call.op_type == OpType.START_STAKING:
            ledger.start_staking(caller)
        elif call.op_type == OpType.PAUSE:
            ledger.pause(caller)
        elif call.op_type == OpType.UNPAUSE:
            ledger.unpause(caller)
        elif call.op_type == OpType.SET_WITHDRAWAL_FEE:
            ledger.set_withdrawal_fee(caller, _int_arg(call, "bps"))
        elif call.op_type == OpType.TRANSFER_OWNERSHIP:
            new_owner = call.args.get("new_owner")
            if not isinstance(new_owner, str):
                raise CallValidationError("TRANSFER_OWNERSHIP must provide 'new_owner' in args")
            ledger.transfer_ownership(caller, new_owner)
        elif call.op_type == OpType.DEPOSIT:
            amount = _int_arg(call, "amount")
            ledger.deposit(caller, amount, now)
            return {"amount": amount}
        elif call.op_type == OpType.WITHDRAW:
            res = ledger.withdraw(caller, _int_arg(call, "amount"), now)
            return {"amount": res.amount, "fee": res.fee, "net": res.net}
        elif call.op_type == OpType.WITHDRAW_ALL:
            res = ledger.withdraw_all(caller, now)
            return {"amount": res.amount, "fee": res.fee, "net": res.net}
        elif call.op_type == OpType.CLAIM:
            return {"amount": ledger.claim(caller, now)}
        elif call.op_type == OpType.FUND_REWARDS:
            amount = _int_arg(call, "amount")
            ledger.fund_rewards(caller, amount, now)
            return {"amount": amount}
        else:
            raise CallValidationError(f"Unsupported operation: {call.op_type}")
        return {}

    # --- Queries ---
    def query(self, name: str, **args: Any) -> Any:
        """Runs a read-only ledger query at the committed timestamp."""
        if name not in QUERIES:
            raise CallValidationError(f"Unknown query: {name}")
        with self._lock:
            if QUERIES[name]:
                args["now"] = self.committed_time()
            return getattr(self.ledger, name)(**args)


def _int_arg(call: Call, name: str) -> int:
    value = call.args.get(name)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise CallValidationError(f"{call.op_type.value} must provide integer '{name}' in args")
    return value
