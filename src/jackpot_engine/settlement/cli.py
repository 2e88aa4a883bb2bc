"""CLI for inspecting settlement configuration, payout splits and degen candidates."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from .candidates import derive_candidate_indices, load_candidate_pool
from .config import load_degen_config, load_protocol_config
from .constants import DEGEN_CANDIDATE_WINDOW
from .logging_utils import configure_logging
from .payouts import compute_claim_amounts


logger = logging.getLogger("jackpot_engine.settlement.cli")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Jackpot settlement CLI")
    parser.add_argument("--log-path", default=None, help="Optional narrative log file")
    parser.add_argument("--audit-log-path", default=None, help="Optional file for committed audit events")
    parser.add_argument("--log-level", default="INFO")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check-config", help="Load and validate config files")
    check_parser.add_argument("--protocol", required=True, help="Path to protocol config YAML")
    check_parser.add_argument("--degen", default=None, help="Path to degen executor config YAML")
    check_parser.add_argument("--pool", default=None, help="Path to degen candidate pool YAML")

    split_parser = subparsers.add_parser("split", help="Show the claim split for a pot")
    split_parser.add_argument("--pot", required=True, type=int)
    split_parser.add_argument("--fee-bps", required=True, type=int)
    split_parser.add_argument("--no-reimburse", action="store_true")

    candidates_parser = subparsers.add_parser("candidates", help="List ranked degen candidates")
    candidates_parser.add_argument("--pool", required=True, help="Path to degen candidate pool YAML")
    candidates_parser.add_argument("--randomness", required=True, help="32-byte randomness as hex")
    candidates_parser.add_argument("--count", type=int, default=DEGEN_CANDIDATE_WINDOW)

    return parser.parse_args(argv)


def _check_config(args: argparse.Namespace) -> dict:
    protocol = load_protocol_config(Path(args.protocol))
    summary: dict = {"protocol": protocol.model_dump()}
    if args.degen:
        summary["degen"] = load_degen_config(Path(args.degen)).model_dump()
    if args.pool:
        pool = load_candidate_pool(Path(args.pool))
        summary["pool"] = {"version": pool.version, "size": len(pool), "snapshot_sha256": pool.snapshot_sha256}
    return summary


def _candidates(args: argparse.Namespace) -> list[dict]:
    pool = load_candidate_pool(Path(args.pool))
    randomness = bytes.fromhex(args.randomness)
    indices = derive_candidate_indices(randomness, pool.version, len(pool), args.count)
    return [
        {"rank": rank, "token_index": index, "asset": pool.assets[index]}
        for rank, index in enumerate(indices)
    ]


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    configure_logging(level, [args.log_path or "", args.audit_log_path or ""])
    if args.command == "check-config":
        result: object = _check_config(args)
    elif args.command == "split":
        result = compute_claim_amounts(args.pot, args.fee_bps, not args.no_reimburse).as_dict()
    else:
        result = _candidates(args)
    logger.info("cli command=%s completed", args.command)
    print(json.dumps(result, sort_keys=True))


if __name__ == "__main__":
    main()
