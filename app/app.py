# app/app.py — Risk-pooling simulator dashboard
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import streamlit as st
import plotly.graph_objects as go
import plotly.express as px

# ----- import engine from repo root -----
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from engine import (
    CENTRALIZED,
    DECENTRALIZED,
    SCENARIO_REGISTRY,
    ScenarioConfig,
    apply_preset,
    base_stock_table,
    generate_narrative,
    pooling_sweep,
    run_scenario,
    run_trace,
)

st.set_page_config(page_title="Risk Pooling Simulator", layout="wide")

st.markdown("""
<style>
.block-container { padding-top: 1.0rem; padding-bottom: 2rem; }
.card{
  background:#FFFFFF; border:1px solid #E5E7EB; border-radius:18px; padding:16px 18px;
  box-shadow:0 2px 10px rgba(15,23,42,.04);
}
.kpi .label{ color:#6B7280; font-size:12px; letter-spacing:.02em; }
.kpi .value{ color:#0B1220; font-size:26px; font-weight:700; }
</style>
""", unsafe_allow_html=True)

if "experiment" not in st.session_state:
    st.session_state["experiment"] = None


# ---------- helpers ----------
def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


def kpi_strip(label: str, row: dict):
    metrics = [
        ("Design", label.title()),
        ("Total Cost / Day", f"{row['TotalCostPerDay']:.2f}"),
        ("Fill Rate", f"{row['FillRate']:.3f}"),
        ("Holding / Day", f"{row['HoldingCostPerDay']:.2f}"),
        ("Backorder / Day", f"{row['BackorderCostPerDay']:.2f}"),
        ("Orders / Day", f"{row['OrdersPerDay']:.2f}"),
    ]
    cols = st.columns(len(metrics))
    for col, (name, value) in zip(cols, metrics):
        with col:
            st.markdown(f'<div class="card kpi"><div class="label">{name}</div>'
                        f'<div class="value">{value}</div></div>', unsafe_allow_html=True)


def plot_cost_breakdown(comp: pd.DataFrame):
    fig = go.Figure()
    for col in ["HoldingCostPerDay", "BackorderCostPerDay", "TransportCostPerDay"]:
        fig.add_trace(go.Bar(x=comp["Topology"], y=comp[col], name=col.replace("PerDay", "")))
    fig.update_layout(template="plotly_white", barmode="stack", height=360,
                      margin=dict(l=10, r=10, t=60, b=10), title="Cost per day by component",
                      legend=dict(orientation="h", y=1.08))
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})


def plot_trace(trace: pd.DataFrame, title: str):
    fig = px.line(trace, x="Day", y="OnHand", color="Node", title=title)
    fig.update_layout(template="plotly_white", height=360, margin=dict(l=10, r=10, t=60, b=10))
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})


# ---------- SIDEBAR (inputs) ----------
with st.sidebar:
    st.header("Inputs")
    preset = st.selectbox("Preset", list(SCENARIO_REGISTRY), index=0)
    base = apply_preset(ScenarioConfig(), preset)

    n_ret = st.number_input("Retailers (N)", min_value=1, max_value=20, value=base.n_retailers, step=1)
    mu = st.number_input("Demand mean (μ)", min_value=0.0, value=base.demand_mean_daily, step=5.0)
    sigma = st.number_input("Demand std (σ)", min_value=0.0, value=base.demand_sigma_daily, step=5.0)
    rho = st.slider("Correlation (ρ)", min_value=0.0, max_value=1.0, value=float(base.demand_correlation_rho), step=0.05)
    draws = st.selectbox("Realized demand draws", ["independent", "correlated"], index=0)
    fill = st.slider("Target fill rate", min_value=0.50, max_value=0.999, value=base.target_fill_rate, step=0.005)

    st.subheader("Lead times (days)")
    lt_in = st.number_input("MFG → CW", min_value=1, value=base.lt_mfg_to_cw, step=1)
    lt_out = st.number_input("CW → Retailer", min_value=1, value=base.lt_cw_to_retailer, step=1)
    lt_dir = st.number_input("MFG → Retailer", min_value=1, value=base.lt_mfg_to_retailer, step=1)

    st.subheader("Costs")
    hold = st.number_input("Holding ($/u/day)", min_value=0.0, value=base.cost_holding_per_day, step=0.05)
    back = st.number_input("Backorder ($/u/day)", min_value=0.0, value=base.cost_backorder_per_day, step=0.5)
    c_in = st.number_input("Transport inbound ($/u)", min_value=0.0, value=base.cost_transport_inbound, step=0.05)
    c_out = st.number_input("Transport outbound ($/u)", min_value=0.0, value=base.cost_transport_outbound, step=0.05)
    c_dir = st.number_input("Transport direct ($/u)", min_value=0.0, value=base.cost_transport_direct, step=0.05)
    issues = st.checkbox("Warehouse issues stock to retailers", value=base.warehouse_issues_stock)

    days = st.slider("Horizon (days)", min_value=30, max_value=730, value=base.t_days, step=5)
    reps = st.number_input("Replications", min_value=1, max_value=500, value=base.r_replications, step=5)
    seed = st.number_input("Base seed", min_value=0, value=42, step=1)
    run_btn = st.button("Run Experiment")

overrides = {
    "N_RETAILERS": int(n_ret),
    "DEMAND_MEAN_DAILY": float(mu),
    "DEMAND_SIGMA_DAILY": float(sigma),
    "DEMAND_CORRELATION_RHO": float(rho),
    "DEMAND_DRAWS": draws,
    "TARGET_FILL_RATE": float(fill),
    "LT_MFG_TO_CW": int(lt_in),
    "LT_CW_TO_RETAILER": int(lt_out),
    "LT_MFG_TO_RETAILER": int(lt_dir),
    "COST_HOLDING_PER_DAY": float(hold),
    "COST_BACKORDER_PER_DAY": float(back),
    "COST_TRANSPORT_INBOUND": float(c_in),
    "COST_TRANSPORT_OUTBOUND": float(c_out),
    "COST_TRANSPORT_DIRECT": float(c_dir),
    "WAREHOUSE_ISSUES_STOCK": bool(issues),
    "T_DAYS": int(days),
    "R_REPLICATIONS": int(reps),
}
cfg = base.with_overrides(overrides)

st.title("Centralized vs. Decentralized Inventory")
tabs = st.tabs(["Overview", "Replications", "Daily Log", "Risk Pooling"])

if run_btn:
    with st.spinner("Simulating…"):
        st.session_state["experiment"] = run_scenario(cfg, scenario_name=preset, base_seed=int(seed))

exp = st.session_state["experiment"]

with tabs[0]:
    st.dataframe(base_stock_table(cfg), use_container_width=True)
    if exp is None:
        st.info("Set inputs and press **Run Experiment**.")
    else:
        result, comp, stats = exp
        for _, row in comp.iterrows():
            kpi_strip(row["Topology"], row.to_dict())
        plot_cost_breakdown(comp)
        story = generate_narrative(result.summaries, target_fill_rate=cfg.target_fill_rate)
        st.markdown(f"**{story['headline']}**")
        for bullet in story["details"]:
            st.markdown(f"- {bullet}")
        st.download_button("Download comparison (CSV)", to_csv_bytes(comp), "design_comparison.csv", "text/csv")

with tabs[1]:
    if exp is not None:
        result, comp, stats = exp
        runs = result.runs_frame()
        fig = px.box(runs, x="Topology", y="TotalCost", points="all", title="Total cost per replication")
        fig.update_layout(template="plotly_white", height=380)
        st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})
        st.dataframe(stats.round(3), use_container_width=True)
        st.download_button("Download replications (CSV)", to_csv_bytes(runs), "replications.csv", "text/csv")

with tabs[2]:
    topo = st.radio("Design", [CENTRALIZED, DECENTRALIZED], horizontal=True)
    trace_days = st.slider("Days to trace", min_value=10, max_value=int(days), value=min(60, int(days)))
    trace = run_trace(cfg.with_overrides({"T_DAYS": int(trace_days)}), topo, int(seed))
    plot_trace(trace, f"On-hand by node — {topo}")
    st.dataframe(trace, use_container_width=True, height=360)

with tabs[3]:
    lower = -1.0 / (cfg.n_retailers - 1) if cfg.n_retailers > 1 else -1.0
    start = max(np.ceil(lower * 1000) / 1000, -0.5)
    rhos = np.round(np.linspace(start, 1.0, 21), 3)
    sweep = pooling_sweep(cfg, rhos)
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=sweep["Rho"], y=sweep["PooledSafetyStock"], name="Pooled (CW)", mode="lines",
                             line=dict(width=3)))
    fig.add_trace(go.Scatter(x=sweep["Rho"], y=sweep["IndependentSafetyStock"], name="Separate buffers",
                             mode="lines", line=dict(width=3, dash="dot")))
    fig.update_layout(template="plotly_white", height=360, title="Safety stock vs. demand correlation",
                      xaxis_title="ρ", yaxis_title="Units")
    st.plotly_chart(fig, use_container_width=True, config={"displayModeBar": False})
    st.dataframe(sweep.round(2), use_container_width=True)
