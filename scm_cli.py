#!/usr/bin/env python3
"""Command-line runner for the centralized vs. decentralized comparison."""

from __future__ import annotations
import argparse
import logging
from pathlib import Path

from engine import (
    SCENARIO_REGISTRY,
    TOPOLOGIES,
    ScenarioConfig,
    apply_preset,
    base_stock_table,
    generate_narrative,
    load_config,
    run_experiment,
    run_trace,
)
from report import format_comparison

logger = logging.getLogger("scm_cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inventory risk-pooling simulator")
    parser.add_argument("config", type=Path, nargs="?", default=None, help="Path to JSON config file")
    parser.add_argument("--preset", choices=sorted(SCENARIO_REGISTRY), default=None, help="Scenario preset")
    parser.add_argument("--replications", type=int, default=None, help="Override R_REPLICATIONS")
    parser.add_argument("--days", type=int, default=None, help="Override T_DAYS")
    parser.add_argument("--seed", type=int, default=None, help="Base random seed")
    parser.add_argument("--trace-csv", type=Path, default=None,
                        help="Write the daily per-node log of the first replication")
    parser.add_argument("--topology", choices=TOPOLOGIES, default=TOPOLOGIES[0],
                        help="Design traced by --trace-csv")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    overrides = {}
    if args.replications is not None:
        overrides["R_REPLICATIONS"] = args.replications
    if args.days is not None:
        overrides["T_DAYS"] = args.days
    try:
        cfg = load_config(args.config) if args.config else ScenarioConfig()
        if args.preset:
            cfg = apply_preset(cfg, args.preset)
        cfg = cfg.with_overrides(overrides)
    except (KeyError, TypeError, ValueError) as exc:
        parser.error(f"invalid configuration: {exc}")

    result = run_experiment(cfg, args.seed)

    print("Base-stock targets:")
    print(base_stock_table(cfg).to_string(index=False))
    print()
    print(f"Summary averaged over {cfg.r_replications} replications (base seed {result.base_seed}):")
    print(format_comparison(result.summaries))
    story = generate_narrative(result.summaries, target_fill_rate=cfg.target_fill_rate)
    print(story["headline"])
    for bullet in story["details"]:
        print(f"  - {bullet}")

    if args.trace_csv:
        trace = run_trace(cfg, args.topology, result.base_seed)
        args.trace_csv.parent.mkdir(parents=True, exist_ok=True)
        trace.to_csv(args.trace_csv, index=False)
        logger.info("Saved %s trace → %s", args.topology, args.trace_csv)


if __name__ == "__main__":
    main()
