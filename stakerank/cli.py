"""Command-line access to curve parameters, ledger snapshots and simulations."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from stakerank.curation.config import StakeRankConfig
from stakerank.curation.engine import CurationEngine
from stakerank.curation.errors import CurationError
from stakerank.curation.hooks import LoggingHooks
from stakerank.curation.ledger import EntryLedger, load_ledger, save_ledger
from stakerank.curation.models import CurveParameters, Entry, entry_id
from stakerank.curation.ranking import top_entries
from stakerank.curation.token import InMemoryToken
from stakerank.logging import LoggingOptions, configure_logging, load_logging_options_from_env

logger = logging.getLogger(__name__)

SUCCESS = "✅"
ERROR = "❌"


def _load_config(args: argparse.Namespace) -> StakeRankConfig:
    return StakeRankConfig.load(args.config)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _load_state(args: argparse.Namespace, params: CurveParameters) -> EntryLedger:
    path = Path(args.state) if args.state else Path(_load_config(args).storage.state_file)
    return load_ledger(path, params)


def _ranked(entries: List[Entry]) -> List[Dict[str, Any]]:
    return [
        {
            "rank": position,
            "id": entry.label,
            "owner": entry.owner,
            "effective_balance": entry.effective_balance,
            "balance": entry.balance,
        }
        for position, entry in enumerate(entries, start=1)
    ]


def _cmd_params(args: argparse.Namespace) -> int:
    try:
        _print_json(_load_config(args).curve.to_parameters().to_dict())
        return 0
    except (OSError, ValueError) as exc:
        print(f"{ERROR} Invalid configuration: {exc}", file=sys.stderr)
        return 1


def _cmd_show(args: argparse.Namespace) -> int:
    try:
        params = _load_config(args).curve.to_parameters()
        ledger = _load_state(args, params)
        if args.id:
            _print_json(ledger.snapshot(entry_id(args.id)).to_dict())
        else:
            _print_json(ledger.to_dict())
        return 0
    except (OSError, ValueError, CurationError) as exc:
        print(f"{ERROR} Show failed: {exc}", file=sys.stderr)
        return 1


def _cmd_top(args: argparse.Namespace) -> int:
    try:
        params = _load_config(args).curve.to_parameters()
        _print_json(_ranked(top_entries(_load_state(args, params), args.k)))
        return 0
    except (OSError, ValueError, CurationError) as exc:
        print(f"{ERROR} Ranking failed: {exc}", file=sys.stderr)
        return 1


def _cmd_cost(args: argparse.Namespace) -> int:
    try:
        params = _load_config(args).curve.to_parameters()
        engine = CurationEngine(params, InMemoryToken(), ledger=_load_state(args, params))
        _print_json(engine.downvote_cost(args.id).to_dict())
        return 0
    except (OSError, ValueError, CurationError) as exc:
        print(f"{ERROR} Cost failed: {exc}", file=sys.stderr)
        return 1


async def run_simulation(
    params: CurveParameters,
    entries: int,
    downvotes: int,
    seed: int = 0,
    upvotes: int = 0,
) -> CurationEngine:
    """
    Populate an engine with random stakes, upvotes and downvotes.

    Uses an InMemoryToken with generously funded accounts. Rejected
    operations are logged and skipped.
    """
    rng = random.Random(seed)
    token = InMemoryToken()
    engine = CurationEngine(params, token, hooks=LoggingHooks(logging.DEBUG))
    funding = params.safe_max * 10

    def fund(account: str, amount: int) -> None:
        token.mint(account, funding)
        token.approve(account, amount)

    for i in range(entries):
        owner = f"owner-{i}"
        stake = rng.randint(1_000, max(1_000, params.safe_max // 20))
        fund(owner, stake)
        try:
            await engine.create(owner, f"entry-{i}", stake)
        except CurationError as exc:
            logger.info(f"simulation: create entry-{i} skipped: {exc}")

    ids = [entry.entry_id for entry in engine.entries()]
    for n in range(upvotes):
        if not ids:
            break
        target = rng.choice(ids)
        backer = f"backer-{n}"
        amount = rng.randint(100, 10_000)
        fund(backer, amount)
        try:
            await engine.upvote(backer, target, amount)
        except CurationError as exc:
            logger.info(f"simulation: upvote {n} skipped: {exc}")

    for n in range(downvotes):
        if not ids:
            break
        target = rng.choice(ids)
        voter = f"voter-{n}"
        try:
            cost = engine.downvote_cost(target).cost
            fund(voter, cost)
            await engine.downvote(voter, target, cost)
        except CurationError as exc:
            logger.info(f"simulation: downvote {n} skipped: {exc}")

    return engine


def _cmd_simulate(args: argparse.Namespace) -> int:
    try:
        params = _load_config(args).curve.to_parameters()
        engine = asyncio.run(run_simulation(params, args.entries, args.downvotes, args.seed, args.upvotes))
        _print_json(_ranked(top_entries(engine.ledger, args.k)))
        if args.state:
            save_ledger(args.state, engine.ledger)
            print(f"{SUCCESS} Saved {len(engine.ledger)} entries to {args.state}", file=sys.stderr)
        return 0
    except (OSError, ValueError, CurationError) as exc:
        print(f"{ERROR} Simulation failed: {exc}", file=sys.stderr)
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="stakerank curation CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--config", help="Path to a JSON/TOML/YAML config file")
    parser.add_argument("--log-level", default=None, help="Override the configured log level")

    sub = parser.add_subparsers(dest="command", required=True)

    p_params = sub.add_parser("params", help="Print the curve parameters")
    p_params.set_defaults(func=_cmd_params)

    p_show = sub.add_parser("show", help="Print entries from a ledger snapshot")
    p_show.add_argument("--state", help="Ledger snapshot (defaults to storage.state_file)")
    p_show.add_argument("id", nargs="?", help="Entry id to show")
    p_show.set_defaults(func=_cmd_show)

    p_top = sub.add_parser("top", help="Print the ranking of a ledger snapshot")
    p_top.add_argument("--state", help="Ledger snapshot (defaults to storage.state_file)")
    p_top.add_argument("-k", type=int, default=10, help="Number of entries")
    p_top.set_defaults(func=_cmd_top)

    p_cost = sub.add_parser("cost", help="Print the downvote cost of an entry")
    p_cost.add_argument("--state", help="Ledger snapshot (defaults to storage.state_file)")
    p_cost.add_argument("id", help="Entry id")
    p_cost.set_defaults(func=_cmd_cost)

    p_sim = sub.add_parser("simulate", help="Run an in-memory curation scenario")
    p_sim.add_argument("--entries", type=int, default=5, help="Entries to create")
    p_sim.add_argument("--upvotes", type=int, default=5, help="Upvotes to apply")
    p_sim.add_argument("--downvotes", type=int, default=10, help="Downvotes to apply")
    p_sim.add_argument("--seed", type=int, default=0, help="Random seed")
    p_sim.add_argument("-k", type=int, default=10, help="Entries to print")
    p_sim.add_argument("--state", help="Save the resulting ledger snapshot here")
    p_sim.set_defaults(func=_cmd_simulate)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # --log-level > STAKERANK_LOG_* > config file / STAKERANK_LOGGING_* > defaults
    try:
        options = load_logging_options_from_env(LoggingOptions.from_config(_load_config(args).logging))
        if args.log_level:
            options = LoggingOptions(args.log_level, options.format, options.file, options.redact)
        configure_logging(options)
    except (OSError, ValueError) as exc:
        print(f"{ERROR} Invalid configuration: {exc}", file=sys.stderr)
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
