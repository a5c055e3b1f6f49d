# report.py
from __future__ import annotations
import logging
import os
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from engine_core import CENTRALIZED, DECENTRALIZED, SummaryMetrics

logger = logging.getLogger(__name__)

# (label, attribute, decimals)
_ROWS = [
    ("Total Cost / Day", "total_cost_per_day", 2),
    ("Fill Rate (beta)", "fill_rate", 3),
    ("Holding Cost / Day", "avg_holding_cost_per_day", 2),
    ("Backorder Cost / Day", "avg_backorder_cost_per_day", 2),
    ("Transport Cost / Day", "avg_transport_cost_per_day", 2),
    ("Orders Per Day", "avg_orders_per_day", 2),
]


# ---------- console ----------
def format_comparison(
    summaries: Dict[str, SummaryMetrics],
    columns: tuple[str, ...] = (CENTRALIZED, DECENTRALIZED),
) -> str:
    """Fixed-width METRIC | design | design table."""
    columns = tuple(c for c in columns if c in summaries)
    width = 20 + 18 * len(columns)
    rule = "-" * width
    lines: List[str] = [rule]
    lines.append(f"{'METRIC':<20}" + "".join(f" | {c.upper():<15}" for c in columns))
    lines.append(rule)
    for i, (label, attr, nd) in enumerate(_ROWS):
        vals = "".join(f" | {getattr(summaries[c], attr):<15.{nd}f}" for c in columns)
        lines.append(f"{label:<20}{vals}")
        if i == 0:
            lines.append(rule)
    lines.append(rule)
    return "\n".join(lines)


# ---------- helpers ----------
def _nice_float(x, n=3):
    try:
        return round(float(x), n)
    except (TypeError, ValueError):
        return x


def _read_and_clean_comparison(comparison_csv: str) -> pd.DataFrame:
    df = pd.read_csv(comparison_csv)

    keep = [
        "Scenario", "Topology",
        "TotalCostPerDay", "FillRate", "HoldingCostPerDay", "BackorderCostPerDay",
        "TransportCostPerDay", "OrdersPerDay",
        "TotalCostPerDay_delta", "TotalCostPerDay_delta_pct", "FillRate_delta",
    ]
    keep = [c for c in keep if c in df.columns]
    df = df[keep].copy()

    nice = {
        "TotalCostPerDay": "Total $/day",
        "FillRate": "Fill Rate",
        "HoldingCostPerDay": "Holding $/day",
        "BackorderCostPerDay": "Backorder $/day",
        "TransportCostPerDay": "Transport $/day",
        "OrdersPerDay": "Orders/day",
        "TotalCostPerDay_delta": "Δ Total $/day",
        "TotalCostPerDay_delta_pct": "Δ Total %",
        "FillRate_delta": "Δ FR",
    }
    df.rename(columns=nice, inplace=True)

    for c in df.columns:
        if c in ("Scenario", "Topology"):
            continue
        df[c] = df[c].apply(lambda v: _nice_float(v, 3))
    return df


def _read_risk_summary(risk_csv: str | None) -> pd.DataFrame:
    if not risk_csv or not os.path.exists(risk_csv):
        return pd.DataFrame()
    df = pd.read_csv(risk_csv)
    keep_stats = {"mean", "std", "q05", "q95", "risk"}
    if "stat" in df.columns:
        df = df[df["stat"].isin(keep_stats)].copy()
    keep_cols = ["Scenario", "Topology", "stat", "TotalCost", "FillRate",
                 "FillRate_prob_below_target", "TotalCost_cvar95"]
    return df[[c for c in keep_cols if c in df.columns]]


# ---------- main API ----------
def make_pdf(
    comparison_csv: str,
    out_pdf: str,
    img_dir: str,
    risk_csv: Optional[str] = None,
    narrative: Optional[List[str]] = None,
) -> None:
    from reportlab.lib import colors
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import inch
    from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="H0", parent=styles["Title"], fontSize=20, leading=24))
    styles.add(ParagraphStyle(name="H1", parent=styles["Heading2"], spaceBefore=10, spaceAfter=6))
    styles.add(ParagraphStyle(name="Small", parent=styles["BodyText"], fontSize=9, leading=12))

    table_style = TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("ALIGN", (0, 0), (-1, -1), "CENTER"),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, 0), 9),
        ("GRID", (0, 0), (-1, -1), 0.25, colors.lightgrey),
        ("FONTSIZE", (0, 1), (-1, -1), 8),
    ])

    doc = SimpleDocTemplate(out_pdf, pagesize=landscape(A4), leftMargin=28, rightMargin=28, topMargin=24, bottomMargin=24)
    flow = []

    flow.append(Paragraph("Centralized vs. Decentralized Inventory — Report", styles["H0"]))
    flow.append(Paragraph(datetime.now().strftime("%b %d, %Y %H:%M"), styles["Small"]))
    flow.append(Spacer(1, 8))

    df = _read_and_clean_comparison(comparison_csv)
    flow.append(Paragraph("Design Comparison (per-day averages)", styles["H1"]))
    t = Table([list(df.columns)] + df.values.tolist(), repeatRows=1)
    t.setStyle(table_style)
    flow.append(t)
    flow.append(Spacer(1, 10))

    if narrative:
        flow.append(Paragraph("Summary", styles["H1"]))
        for line in narrative:
            flow.append(Paragraph(f"• {line}", styles["Small"]))
        flow.append(Spacer(1, 10))

    risk_df = _read_risk_summary(risk_csv)
    if not risk_df.empty:
        flow.append(Paragraph("Replication Spread", styles["H1"]))
        risk_df = risk_df.fillna("")
        risk_df = risk_df.apply(lambda col: col.map(lambda v: _nice_float(v, 3) if v != "" else v))
        tbl = Table([list(risk_df.columns)] + risk_df.values.tolist(), repeatRows=1)
        tbl.setStyle(table_style)
        flow.append(tbl)
        flow.append(Spacer(1, 10))

    imgs = sorted(os.path.join(img_dir, f) for f in os.listdir(img_dir) if f.endswith(".png"))
    if imgs:
        flow.append(Paragraph("Charts", styles["H1"]))
        for p in imgs:
            flow.append(Paragraph(os.path.splitext(os.path.basename(p))[0].replace("_", " "), styles["Heading3"]))
            flow.append(Image(p, width=7.5 * inch, height=3.0 * inch))
            flow.append(Spacer(1, 10))

    doc.build(flow)
    logger.info("PDF report saved → %s", out_pdf)
