# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import copy
import sys
import json
import logging
from typing import Dict
from ..protocol.types.call import Call
from ..protocol.types.common import OpType
from ..protocol.crypto.keys import generate_private_key, public_key_from_private
from ..protocol.crypto.addresses import address_from_pubkey
from ..protocol.config.params import PRESETS, CURRENT_PRESET, DENOM, get_preset
from ..ledger.core.asset import InMemoryAssetLedger
from ..ledger.core.host import LedgerHost, ManualClock
from ..ledger.core.staking import StakingLedger
from ..ledger.observability import export_metrics

logger = logging.getLogger(__name__)


class Actor:
    def __init__(self, name: str, seed: str):
        self.name = name
        self.priv = generate_private_key(seed=f"{seed}:{name}")
        self.pub = public_key_from_private(self.priv)
        self.address = address_from_pubkey(self.pub)
        self.nonce = 0

    def call(self, op_type: OpType, args: dict) -> Call:
        call = Call(op_type=op_type, caller=self.address, nonce=self.nonce,
                    args=args, pub_key=self.pub.hex())
        call.sign(self.priv)
        self.nonce += 1
        return call


# --- Params / Keys Commands ---
def cmd_params(args):
    params = get_preset(args.preset) if args.preset else CURRENT_PRESET
    print(json.dumps(params.to_dict(), indent=2))

def cmd_keygen(args):
    priv = generate_private_key(seed=args.seed)
    pub = public_key_from_private(priv)
    print(f"Address: {address_from_pubkey(pub)}")
    print(f"Pubkey:  {pub.hex()}")
    if args.show_private:
        print(f"Private: {priv.hex()}")
        print("Important: Private key printed in clear. Do not share!")

# --- Simulation ---
def load_scenario(path: str) -> dict:
    with open(path, "r") as f:
        scenario = json.load(f)
    if "steps" not in scenario:
        raise ValueError("Scenario must define 'steps'")
    return scenario

def run_scenario(scenario: dict) -> Dict[str, object]:
    """
    Runs a scenario against a fresh in-memory ledger.

    Returns a dict with the host, the actors and the receipts of every step.
    """
    params = copy.copy(get_preset(scenario.get("preset", CURRENT_PRESET.name)))
    for key, value in scenario.get("overrides", {}).items():
        if key not in vars(params):
            raise ValueError(f"Unknown parameter override: {key}")
        setattr(params, key, value)

    seed = scenario.get("seed", "stakeledger")
    names = set(scenario.get("actors", []))
    names.update(scenario.get("alloc", {}).keys())
    names.add(scenario.get("owner", "owner"))
    names.add(scenario.get("fee_recipient", "fees"))
    actors = {name: Actor(name, seed) for name in sorted(names)}

    asset = InMemoryAssetLedger(
        alloc={actors[name].address: int(amount) for name, amount in scenario.get("alloc", {}).items()}
    )
    ledger = StakingLedger.from_params(
        asset,
        owner=actors[scenario.get("owner", "owner")].address,
        params=params,
        fee_recipient=actors[scenario.get("fee_recipient", "fees")].address,
    )
    clock = ManualClock(start=scenario.get("start_time", params.genesis_time))
    host = LedgerHost(ledger, clock=clock)

    receipts = []
    for i, step in enumerate(scenario["steps"]):
        if "wait" in step:
            clock.advance(int(step["wait"]))
            continue

        actor = actors.get(step.get("actor"))
        if actor is None:
            raise ValueError(f"Step {i}: unknown actor {step.get('actor')!r}")
        op = step["op"].upper()
        step_args = dict(step.get("args", {}))

        # Token approvals happen on the asset ledger, outside the staking host
        if op == "APPROVE":
            asset.approve(actor.address, ledger.custody, int(step_args["amount"]))
            logger.debug(f"{actor.name} approved {step_args['amount']}")
            continue

        if "new_owner" in step_args and step_args["new_owner"] in actors:
            step_args["new_owner"] = actors[step_args["new_owner"]].address

        receipt = host.submit(actor.call(OpType(op), step_args))
        receipts.append((actor.name, receipt))

    return {"host": host, "actors": actors, "receipts": receipts}

def cmd_simulate(args):
    try:
        scenario = load_scenario(args.scenario)
        outcome = run_scenario(scenario)
    except (OSError, ValueError, KeyError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    host = outcome["host"]
    ledger = host.ledger

    print(f"{'#':<4} {'Actor':<10} {'Op':<20} {'Status':<8} Detail")
    print("-" * 72)
    for name, receipt in outcome["receipts"]:
        detail = receipt.error if receipt.error else json.dumps(receipt.result)
        seq = receipt.sequence if receipt.sequence is not None else "-"
        print(f"{seq:<4} {name:<10} {receipt.op_type:<20} {receipt.status:<8} {detail}")

    now = host.committed_time()
    print()
    print(f"{'Actor':<10} {'Wallet':>14} {'Staked':>14} {'Claimable':>14}")
    print("-" * 56)
    for name, actor in outcome["actors"].items():
        print(f"{name:<10} {ledger.asset.balance_of(actor.address):>14} "
              f"{ledger.balance_of(actor.address):>14} {ledger.claimable(actor.address, now):>14}")
    print()
    print(f"Total staked:   {ledger.total_staked()} {DENOM}")
    print(f"Reward reserve: {ledger.reward_reserve()} {DENOM}")
    print(f"State root:     {ledger.state_root()}")

    if args.metrics:
        print()
        print(export_metrics().decode("utf-8"))

def main():
    parser = argparse.ArgumentParser(description="StakeLedger CLI")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, ...)")
    subparsers = parser.add_subparsers(dest="command")

    p_params = subparsers.add_parser("params", help="Show ledger parameters")
    p_params.add_argument("--preset", choices=sorted(PRESETS), help="Preset (default: STAKELEDGER_PRESET)")
    p_params.set_defaults(func=cmd_params)

    p_keygen = subparsers.add_parser("keygen", help="Generate a key pair and address")
    p_keygen.add_argument("--seed", help="Derive the key from a seed (simulation only)")
    p_keygen.add_argument("--show-private", action="store_true", help="Print the private key")
    p_keygen.set_defaults(func=cmd_keygen)

    p_sim = subparsers.add_parser("simulate", help="Run a JSON scenario against an in-memory ledger")
    p_sim.add_argument("scenario", help="Path to scenario JSON")
    p_sim.add_argument("--metrics", action="store_true", help="Print Prometheus metrics afterwards")
    p_sim.set_defaults(func=cmd_simulate)

    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(1)
    args.func(args)

if __name__ == "__main__":
    main()
