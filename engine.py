from __future__ import annotations
"""Public simulation API.

Re-exports the core from ``engine_core`` and adds the config-file and
scenario conveniences used by the CLI, the batch driver and the dashboard.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import pandas as pd

from engine_core import (
    CENTRALIZED,
    DECENTRALIZED,
    SCENARIO_REGISTRY,
    TOPOLOGIES,
    ExperimentResult,
    Metrics,
    ScenarioConfig,
    SummaryMetrics,
    apply_preset,
    compare_designs,
    ensure_dir,
    generate_narrative,
    pooling_sweep,
    replications_frame,
    retailer_base_stock,
    run_experiment,
    run_replication,
    run_replications,
    run_trace,
    save_cost_plot,
    save_inventory_plot,
    save_pooling_plot,
    summarize_kpis,
    warehouse_base_stock,
)

ConfigLike = Union[ScenarioConfig, Dict, None]


def load_config(path: Union[str, Path]) -> ScenarioConfig:
    """Read a JSON file of upper-case options into a validated config."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise TypeError(f"Expected a JSON object in {path}, got {type(data).__name__}")
    return ScenarioConfig.from_dict(data)


def as_config(cfg: ConfigLike) -> ScenarioConfig:
    if isinstance(cfg, ScenarioConfig):
        return cfg
    return ScenarioConfig.from_dict(cfg)


def run_scenario(
    base_cfg: ConfigLike,
    overrides: Optional[Dict] = None,
    *,
    scenario_name: Optional[str] = None,
    base_seed: Optional[int] = None,
) -> Tuple[ExperimentResult, pd.DataFrame, pd.DataFrame]:
    """Run both designs for one scenario.

    Returns the raw result, the design comparison and the per-replication
    spread summary. Both frames carry a ``Scenario`` column when
    ``scenario_name`` is given.
    """

    cfg = as_config(base_cfg).with_overrides(overrides)
    result = run_experiment(cfg, base_seed)
    comparison = result.comparison_frame()
    stats = summarize_kpis(result.runs_frame(), target_fill_rate=cfg.target_fill_rate)
    if scenario_name:
        comparison.insert(0, "Scenario", scenario_name)
        stats.insert(0, "Scenario", scenario_name)
    return result, comparison, stats


def base_stock_table(cfg: ConfigLike) -> pd.DataFrame:
    """Order-up-to levels each design would use."""
    cfg = as_config(cfg)
    return pd.DataFrame([
        {"Topology": CENTRALIZED, "Node": "CW", "BaseStock": warehouse_base_stock(cfg)},
        {"Topology": CENTRALIZED, "Node": "Retailer", "BaseStock": retailer_base_stock(cfg, CENTRALIZED)},
        {"Topology": DECENTRALIZED, "Node": "Retailer", "BaseStock": retailer_base_stock(cfg, DECENTRALIZED)},
    ])


__all__ = [
    "CENTRALIZED",
    "DECENTRALIZED",
    "TOPOLOGIES",
    "SCENARIO_REGISTRY",
    "ExperimentResult",
    "Metrics",
    "ScenarioConfig",
    "SummaryMetrics",
    "apply_preset",
    "as_config",
    "base_stock_table",
    "compare_designs",
    "ensure_dir",
    "generate_narrative",
    "load_config",
    "pooling_sweep",
    "replications_frame",
    "run_experiment",
    "run_replication",
    "run_replications",
    "run_scenario",
    "run_trace",
    "save_cost_plot",
    "save_inventory_plot",
    "save_pooling_plot",
    "summarize_kpis",
]
