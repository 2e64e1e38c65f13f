# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports staking ledger metrics in Prometheus format.

Metrics:
- Deposits, withdrawals, claims (counts and volumes)
- Exit fees collected
- Failed calls by error type
- Total staked, reward reserve, unclaimed rewards, accounts
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# OPERATION METRICS
# ═══════════════════════════════════════════════════════════════════

operations_total = Counter(
    'stakeledger_operations_total',
    'Total number of committed ledger operations',
    ['op_type'],
    registry=metrics_registry
)

failed_operations_total = Counter(
    'stakeledger_failed_operations_total',
    'Total number of rejected ledger operations',
    ['op_type', 'error'],
    registry=metrics_registry
)

events_emitted_total = Counter(
    'stakeledger_events_emitted_total',
    'Total number of emitted ledger events',
    ['event'],
    registry=metrics_registry
)

deposit_volume_total = Counter(
    'stakeledger_deposit_volume_total',
    'Total amount deposited (base units)',
    registry=metrics_registry
)

withdrawal_volume_total = Counter(
    'stakeledger_withdrawal_volume_total',
    'Total principal withdrawn (base units)',
    registry=metrics_registry
)

fees_collected_total = Counter(
    'stakeledger_fees_collected_total',
    'Total exit fees sent to the fee recipient (base units)',
    registry=metrics_registry
)

rewards_claimed_total = Counter(
    'stakeledger_rewards_claimed_total',
    'Total rewards paid out (base units)',
    registry=metrics_registry
)

withdrawal_fee_ratio = Histogram(
    'stakeledger_withdrawal_fee_ratio',
    'Fee as a share of the withdrawn amount',
    buckets=[0, 0.001, 0.005, 0.01, 0.05, 0.1, 1.0],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# STATE METRICS
# ═══════════════════════════════════════════════════════════════════

total_staked = Gauge(
    'stakeledger_total_staked',
    'Sum of principal over all accounts',
    registry=metrics_registry
)

reward_reserve = Gauge(
    'stakeledger_reward_reserve',
    'Custody balance not backing principal',
    registry=metrics_registry
)

accrued_rewards = Gauge(
    'stakeledger_accrued_rewards',
    'Settled rewards not yet claimed',
    registry=metrics_registry
)

accounts_total = Gauge(
    'stakeledger_accounts_total',
    'Number of accounts that ever deposited',
    registry=metrics_registry
)

ledger_paused = Gauge(
    'stakeledger_paused',
    '1 while the ledger is paused',
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def update_metrics(ledger):
    """
    Refresh gauges from ledger state.
    Counters are updated where the operation happens.

    Args:
        ledger: StakingLedger instance
    """
    total_staked.set(ledger.total_staked())
    reward_reserve.set(max(ledger.reward_reserve(), 0))
    accrued_rewards.set(ledger.book.total_accrued())
    accounts_total.set(len(ledger.book))
    ledger_paused.set(1 if ledger.config.paused else 0)


def record_failure(op_type: str, error: Exception):
    failed_operations_total.labels(op_type=op_type, error=type(error).__name__).inc()


def export_metrics() -> bytes:
    """Prometheus text exposition of the ledger registry."""
    return generate_latest(metrics_registry)
