# run_experiment.py
from __future__ import annotations
import logging
import os

import numpy as np
import pandas as pd

from engine import (
    CENTRALIZED,
    DECENTRALIZED,
    SCENARIO_REGISTRY,
    ScenarioConfig,
    apply_preset,
    ensure_dir,
    generate_narrative,
    pooling_sweep,
    run_scenario,
    run_trace,
    save_cost_plot,
    save_inventory_plot,
    save_pooling_plot,
)
from report import format_comparison, make_pdf

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run_experiment")

BASE_CFG = ScenarioConfig()
BASE_SEED = 42
TRACE_DAYS = 60
OUT = "outputs"

ensure_dir(OUT)

comparisons = []
spreads = []
narrative = []

for idx, name in enumerate(SCENARIO_REGISTRY):
    cfg = apply_preset(BASE_CFG, name)
    seed = BASE_SEED + idx * 1000
    result, comparison, stats = run_scenario(cfg, scenario_name=name, base_seed=seed)
    comparisons.append(comparison)
    spreads.append(stats)

    print(f"\n=== {name} ===")
    print(format_comparison(result.summaries))
    story = generate_narrative(result.summaries, target_fill_rate=cfg.target_fill_rate)
    narrative.append(f"<b>{name}</b>: {story['headline']}")

    save_cost_plot(comparison, f"Cost breakdown — {name}", os.path.join(OUT, f"{name}_cost.png"))
    if name == "baseline":
        short = cfg.with_overrides({"T_DAYS": TRACE_DAYS})
        for topology in (CENTRALIZED, DECENTRALIZED):
            trace = run_trace(short, topology, seed)
            trace.to_csv(os.path.join(OUT, f"{name}_{topology}_trace.csv"), index=False)
            save_inventory_plot(trace, f"Inventory — {name} ({topology})",
                                os.path.join(OUT, f"{name}_{topology}_inventory.png"))

comparison_df = pd.concat(comparisons, ignore_index=True)
comparison_path = os.path.join(OUT, "design_comparison.csv")
comparison_df.to_csv(comparison_path, index=False)

spread_df = pd.concat(spreads, ignore_index=True)
spread_path = os.path.join(OUT, "replication_spread.csv")
spread_df.to_csv(spread_path, index=False)

sweep = pooling_sweep(BASE_CFG, np.round(np.linspace(-0.5, 1.0, 16), 2))
sweep_path = os.path.join(OUT, "pooling_sweep.csv")
sweep.to_csv(sweep_path, index=False)
save_pooling_plot(sweep, "Risk pooling — safety stock vs ρ", os.path.join(OUT, "pooling_sweep.png"))

pdf_path = os.path.join(OUT, "risk_pooling_report.pdf")
make_pdf(comparison_path, pdf_path, OUT, risk_csv=spread_path, narrative=narrative)

logger.info("Saved %s, %s, %s and PNG charts in %s", comparison_path, spread_path, sweep_path, OUT)
