# MIT License
# Copyright (c) 2025 Hashborn

"""
Tests for the host execution environment:
- Signed call verification (signature, pub_key, nonce)
- Committed timestamps
- All-or-nothing rollback of ledger and token state
- Receipts and events
"""

import threading
import pytest
from unittest.mock import Mock

from stakeledger.ledger.core.asset import InMemoryAssetLedger
from stakeledger.ledger.core.host import LedgerHost, ManualClock
from stakeledger.ledger.core.receipts import CallReceipt, ReceiptStore
from stakeledger.ledger.core.staking import StakingLedger
from stakeledger.protocol.types.call import Call
from stakeledger.protocol.types.common import OpType, ExternalTransferError, CallValidationError
from stakeledger.protocol.crypto.keys import generate_private_key, public_key_from_private
from stakeledger.protocol.crypto.addresses import address_from_pubkey
from stakeledger.protocol.config.params import SECONDS_PER_YEAR

T0 = 1_700_000_000
WALLET = 10**24


class Actor:
    def __init__(self, name):
        self.priv = generate_private_key(seed=f"test:{name}")
        self.pub = public_key_from_private(self.priv)
        self.address = address_from_pubkey(self.pub)
        self.nonce = 0

    def call(self, op_type, sign=True, **args):
        call = Call(op_type=op_type, caller=self.address, nonce=self.nonce,
                    args=args, pub_key=self.pub.hex())
        if sign:
            call.sign(self.priv)
        self.nonce += 1
        return call


class FailingFeeAsset(InMemoryAssetLedger):
    """Token whose transfers to one address always fail."""

    def __init__(self, blocked, **kwargs):
        super().__init__(**kwargs)
        self.blocked = blocked

    def transfer(self, sender, to, amount):
        if to == self.blocked:
            raise ExternalTransferError(f"recipient {to} rejected transfer")
        super().transfer(sender, to, amount)

    def clone(self):
        cloned = FailingFeeAsset(self.blocked, symbol=self.symbol)
        cloned.restore(self)
        return cloned


@pytest.fixture
def actors():
    return {name: Actor(name) for name in ("owner", "alice", "bob", "fees")}


def build_host(actors, asset_cls=InMemoryAssetLedger, **asset_kwargs):
    alloc = {actors[n].address: WALLET for n in ("owner", "alice", "bob")}
    asset = asset_cls(alloc=alloc, **asset_kwargs)
    ledger = StakingLedger(
        asset,
        owner=actors["owner"].address,
        fee_recipient=actors["fees"].address,
        max_balance_per_user=500,
        lockup_duration=100,
        annual_reward_rate=10,
        withdrawal_fee_bps=100,
    )
    for n in ("owner", "alice", "bob"):
        asset.approve(actors[n].address, ledger.custody, WALLET)
    return LedgerHost(ledger, clock=ManualClock(start=T0))


@pytest.fixture
def host(actors):
    host = build_host(actors)
    assert host.submit(actors["owner"].call(OpType.START_STAKING)).ok
    return host


# ═══════════════════════════════════════════════════════════════════
# HAPPY PATH
# ═══════════════════════════════════════════════════════════════════

def test_signed_deposit_and_withdraw(host, actors):
    alice = actors["alice"]

    receipt = host.submit(alice.call(OpType.DEPOSIT, amount=1000))
    assert receipt.ok
    assert receipt.timestamp == T0
    assert receipt.result == {"amount": 1000}
    assert host.query("balance_of", address=alice.address) == 1000

    host.clock.advance(50)
    receipt = host.submit(alice.call(OpType.WITHDRAW, amount=400))
    assert receipt.ok
    assert receipt.result == {"amount": 400, "fee": 4, "net": 396}
    assert host.ledger.asset.balance_of(actors["fees"].address) == 4

    assert host.get_nonce(alice.address) == 2
    assert host.receipts.get(receipt.call_hash) is receipt


def test_sequence_numbers_are_global(host, actors):
    r1 = host.submit(actors["alice"].call(OpType.DEPOSIT, amount=10))
    r2 = host.submit(actors["bob"].call(OpType.DEPOSIT, amount=10))
    assert r2.sequence == r1.sequence + 1


def test_query_uses_committed_time(host, actors):
    alice = actors["alice"]
    host.submit(alice.call(OpType.DEPOSIT, amount=1_000_000))
    host.clock.advance(SECONDS_PER_YEAR)

    assert host.query("claimable", address=alice.address) == 100_000
    assert host.query("withdrawal_fee") == 100
    assert host.query("owner") == actors["owner"].address

    with pytest.raises(CallValidationError):
        host.query("deposit", address=alice.address)


def test_admin_calls_through_host(host, actors):
    owner = actors["owner"]
    assert host.submit(owner.call(OpType.SET_WITHDRAWAL_FEE, bps=250)).ok
    assert host.query("withdrawal_fee") == 250

    receipt = host.submit(actors["alice"].call(OpType.SET_WITHDRAWAL_FEE, bps=0))
    assert not receipt.ok
    assert receipt.error.startswith("AuthorizationError")
    assert host.query("withdrawal_fee") == 250

    assert host.submit(owner.call(OpType.TRANSFER_OWNERSHIP, new_owner=actors["bob"].address)).ok
    assert host.query("owner") == actors["bob"].address


# ═══════════════════════════════════════════════════════════════════
# CALL VALIDATION
# ═══════════════════════════════════════════════════════════════════

def test_unsigned_call_rejected(host, actors):
    alice = actors["alice"]
    receipt = host.submit(alice.call(OpType.DEPOSIT, sign=False, amount=10))

    assert receipt.status == 'failed'
    assert receipt.sequence is None
    assert "Missing signature" in receipt.error
    assert host.get_nonce(alice.address) == 0


def test_tampered_call_rejected(host, actors):
    alice = actors["alice"]
    call = alice.call(OpType.DEPOSIT, amount=10)
    call.args["amount"] = 10_000

    receipt = host.submit(call)
    assert "Invalid signature" in receipt.error
    assert host.query("balance_of", address=alice.address) == 0


def test_impersonation_rejected(host, actors):
    mallory = actors["bob"]
    call = Call(op_type=OpType.PAUSE, caller=actors["owner"].address, nonce=0,
                pub_key=mallory.pub.hex())
    call.sign(mallory.priv)

    receipt = host.submit(call)
    assert "pub_key mismatch" in receipt.error
    assert host.ledger.config.paused is False


def test_wrong_nonce_rejected(host, actors):
    alice = actors["alice"]
    alice.nonce = 5
    receipt = host.submit(alice.call(OpType.DEPOSIT, amount=10))
    assert "Invalid nonce" in receipt.error


def test_replay_rejected(host, actors):
    alice = actors["alice"]
    call = alice.call(OpType.DEPOSIT, amount=10)
    assert host.submit(call).ok
    assert not host.submit(call).ok
    assert host.query("balance_of", address=alice.address) == 10

    # The applied receipt survives the rejected replay
    receipt = host.receipts.get(call.hash())
    assert receipt.ok
    assert receipt.sequence is not None


def test_missing_argument_rejected(host, actors):
    alice = actors["alice"]
    receipt = host.submit(alice.call(OpType.DEPOSIT))
    assert receipt.error.startswith("CallValidationError")

    receipt = host.submit(alice.call(OpType.DEPOSIT, amount=True))
    assert receipt.error.startswith("CallValidationError")


# ═══════════════════════════════════════════════════════════════════
# ALL-OR-NOTHING
# ═══════════════════════════════════════════════════════════════════

def test_failed_operation_consumes_nonce_without_effects(host, actors):
    alice = actors["alice"]
    root = host.query("state_root")

    receipt = host.submit(alice.call(OpType.WITHDRAW, amount=1))

    assert receipt.error.startswith("InsufficientBalanceError")
    assert receipt.sequence is not None
    assert host.get_nonce(alice.address) == 1
    assert host.query("state_root") == root


def test_rollback_restores_token_state(actors):
    host = build_host(actors, asset_cls=FailingFeeAsset, blocked=actors["fees"].address)
    alice = actors["alice"]
    host.submit(actors["owner"].call(OpType.START_STAKING))
    host.submit(alice.call(OpType.DEPOSIT, amount=1000))

    wallet_before = host.ledger.asset.balance_of(alice.address)
    root_before = host.query("state_root")

    # Net transfer to alice succeeds, fee transfer fails afterwards
    receipt = host.submit(alice.call(OpType.WITHDRAW, amount=1000))

    assert receipt.error.startswith("ExternalTransferError")
    assert host.ledger.asset.balance_of(alice.address) == wallet_before
    assert host.ledger.asset.balance_of(host.ledger.custody) == 1000
    assert host.query("state_root") == root_before
    assert host.query("balance_of", address=alice.address) == 1000


def test_committed_time_is_monotonic(host, actors):
    host.clock.advance(10)
    host.submit(actors["alice"].call(OpType.DEPOSIT, amount=10))
    assert host.last_timestamp == T0 + 10

    with pytest.raises(ValueError):
        host.clock.set(T0)


def test_concurrent_submissions_are_serialised(host, actors):
    alice = actors["alice"]
    calls = [alice.call(OpType.DEPOSIT, amount=1) for _ in range(20)]

    # Each thread submits its own call; only nonce order decides success
    threads = [threading.Thread(target=host.submit, args=(c,)) for c in calls]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    balance = host.query("balance_of", address=alice.address)
    assert balance == host.get_nonce(alice.address)
    entries = host.query("lock_entries", address=alice.address)
    assert sum(e.amount for e in entries) == balance


# ═══════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════

def test_events_emitted(host, actors):
    alice = actors["alice"]
    deposited = Mock()
    failed = Mock()
    host.ledger.events.subscribe('deposited', deposited)
    host.ledger.events.subscribe('call_failed', failed)

    host.submit(alice.call(OpType.DEPOSIT, amount=10))
    deposited.assert_called_once_with(address=alice.address, amount=10, principal=10, timestamp=T0)

    host.submit(alice.call(OpType.WITHDRAW, amount=11))
    assert failed.call_count == 1
    assert failed.call_args.kwargs["receipt"].op_type == "WITHDRAW"


def test_failing_subscriber_does_not_abort_operation(host, actors):
    alice = actors["alice"]

    def broken(**data):
        raise RuntimeError("subscriber bug")

    host.ledger.events.subscribe('deposited', broken)
    assert host.submit(alice.call(OpType.DEPOSIT, amount=10)).ok
    assert host.query("balance_of", address=alice.address) == 10


# ═══════════════════════════════════════════════════════════════════
# RECEIPT STORE
# ═══════════════════════════════════════════════════════════════════

def test_receipt_store_size_never_observed_over_limit():
    store = ReceiptStore(max_receipts=50)
    sizes = []
    done = threading.Event()

    def writer(n):
        for i in range(100):
            store.add(CallReceipt(call_hash=f"{n}-{i}", op_type="DEPOSIT", caller="x", status='applied'))

    def reader():
        while not done.is_set():
            sizes.append(len(store))

    watcher = threading.Thread(target=reader)
    watcher.start()
    writers = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in writers:
        t.start()
    for t in writers:
        t.join()
    done.set()
    watcher.join()

    # Eviction happens inside add(), so readers only ever see the trimmed store
    assert max(sizes, default=0) <= 50
    assert 0 < len(store) <= 50
