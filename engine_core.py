from __future__ import annotations
import copy
import logging
import math
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.stats import norm

try:  # Matplotlib is optional for non-plotting contexts
    import matplotlib.pyplot as plt  # type: ignore
except Exception:  # pragma: no cover
    plt = None  # type: ignore


logger = logging.getLogger(__name__)

CENTRALIZED = "centralized"
DECENTRALIZED = "decentralized"
TOPOLOGIES: Tuple[str, ...] = (CENTRALIZED, DECENTRALIZED)

DEMAND_MODES: Tuple[str, ...] = ("independent", "correlated")

MANUFACTURER = "MFG"
WAREHOUSE = "CW"


# ---------------------------------------------------------------------------
# Config + scenario helpers
# ---------------------------------------------------------------------------
SCENARIO_REGISTRY: Dict[str, Dict] = {
    "baseline": {},
    "correlated_demand": {"DEMAND_CORRELATION_RHO": 0.5},
    "perfectly_correlated": {"DEMAND_CORRELATION_RHO": 1.0},
    "volatile_demand": {"DEMAND_SIGMA_DAILY": 60.0},
    "fast_direct_shipping": {"LT_MFG_TO_RETAILER": 2},
    "expensive_backorders": {"COST_BACKORDER_PER_DAY": 20.0},
}


def deep_merge(base: Dict, overrides: Optional[Dict]) -> Dict:
    """Recursive copy + merge."""
    if not overrides:
        return copy.deepcopy(base)
    out = copy.deepcopy(base)
    for key, val in overrides.items():
        if isinstance(val, dict) and isinstance(out.get(key), dict):
            out[key] = deep_merge(out[key], val)
        else:
            out[key] = copy.deepcopy(val)
    return out


def _rng(seed: Optional[int]) -> np.random.Generator:
    return np.random.default_rng(None if seed is None else int(seed))


def _cvar(series: pd.Series | Iterable[float], alpha: float, tail: str = "upper") -> float:
    data = pd.Series(series).dropna()
    if data.empty:
        return float("nan")
    alpha = min(max(alpha, 0.0), 1.0)
    cutoff = data.quantile(alpha)
    if tail == "upper":
        tail_vals = data[data >= cutoff]
    else:
        tail_vals = data[data <= cutoff]
    if tail_vals.empty:
        return float(cutoff)
    return float(tail_vals.mean())


def _is_int(value: object) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, np.integer)):
        return True
    return isinstance(value, float) and value.is_integer()


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, bool)


def validate_config(cfg: Dict) -> None:
    """Validate a configuration dictionary (upper-case keys, JSON layout).

    Missing keys fall back to the defaults of :class:`ScenarioConfig`.

    Raises
    ------
    TypeError
        ``cfg`` is not a dictionary.
    KeyError
        ``cfg`` contains a key that is not a recognised option.
    ValueError
        A value is out of range or of the wrong kind.
    """

    if not isinstance(cfg, dict):
        raise TypeError("Configuration must be a dictionary")
    known = {f.name.upper() for f in fields(ScenarioConfig)}
    unknown = sorted(set(cfg) - known)
    if unknown:
        raise KeyError(f"Unknown configuration key(s): {', '.join(unknown)}")

    merged = {**{f.name.upper(): f.default for f in fields(ScenarioConfig)}, **cfg}

    for key in ("T_DAYS", "R_REPLICATIONS", "N_RETAILERS"):
        val = merged[key]
        if not _is_int(val) or val <= 0:
            raise ValueError(f"{key} must be a positive integer, got {val!r}")

    # A shipment created at end of day d with lead 0 would never be received.
    for key in ("LT_MFG_TO_CW", "LT_CW_TO_RETAILER", "LT_MFG_TO_RETAILER"):
        val = merged[key]
        if not _is_int(val) or val < 1:
            raise ValueError(f"{key} must be an integer >= 1, got {val!r}")

    for key in (
        "COST_HOLDING_PER_DAY",
        "COST_BACKORDER_PER_DAY",
        "COST_TRANSPORT_INBOUND",
        "COST_TRANSPORT_OUTBOUND",
        "COST_TRANSPORT_DIRECT",
        "DEMAND_MEAN_DAILY",
        "DEMAND_SIGMA_DAILY",
    ):
        val = merged[key]
        if not _is_number(val) or not math.isfinite(val) or val < 0:
            raise ValueError(f"{key} must be a finite non-negative number, got {val!r}")

    fill = merged["TARGET_FILL_RATE"]
    if not _is_number(fill) or not 0.0 < fill < 1.0:
        raise ValueError(f"TARGET_FILL_RATE must lie strictly between 0 and 1, got {fill!r}")

    z = merged["Z_SCORE"]
    if z is not None and (not _is_number(z) or not math.isfinite(z)):
        raise ValueError(f"Z_SCORE must be a finite number or null, got {z!r}")

    rho = merged["DEMAND_CORRELATION_RHO"]
    n = int(merged["N_RETAILERS"])
    lower = -1.0 if n == 1 else -1.0 / (n - 1)
    if not _is_number(rho) or not math.isfinite(rho) or not lower <= rho <= 1.0:
        raise ValueError(
            f"DEMAND_CORRELATION_RHO must lie in [{lower:.4g}, 1] for {n} retailers, got {rho!r}"
        )

    if merged["DEMAND_DRAWS"] not in DEMAND_MODES:
        raise ValueError(f"DEMAND_DRAWS must be one of {DEMAND_MODES}, got {merged['DEMAND_DRAWS']!r}")

    if not isinstance(merged["WAREHOUSE_ISSUES_STOCK"], bool):
        raise ValueError("WAREHOUSE_ISSUES_STOCK must be true or false")


@dataclass(frozen=True)
class ScenarioConfig:
    """Immutable scenario parameters shared by the policy engine and the daily cycle."""

    t_days: int = 365
    r_replications: int = 30
    n_retailers: int = 3
    target_fill_rate: float = 0.95
    z_score: Optional[float] = None
    cost_holding_per_day: float = 0.10
    cost_backorder_per_day: float = 5.00
    cost_transport_inbound: float = 0.50
    cost_transport_outbound: float = 0.25
    cost_transport_direct: float = 0.75
    lt_mfg_to_cw: int = 2
    lt_cw_to_retailer: int = 1
    lt_mfg_to_retailer: int = 4
    demand_mean_daily: float = 100.0
    demand_sigma_daily: float = 30.0
    demand_correlation_rho: float = 0.0
    demand_draws: str = "independent"
    warehouse_issues_stock: bool = False

    def __post_init__(self) -> None:
        validate_config(self.to_dict())

    @classmethod
    def from_dict(cls, cfg: Optional[Dict] = None) -> "ScenarioConfig":
        cfg = dict(cfg or {})
        validate_config(cfg)
        kwargs = {}
        for f in fields(cls):
            key = f.name.upper()
            if key not in cfg:
                continue
            default = getattr(cls, f.name)
            val = cfg[key]
            if isinstance(default, bool):
                kwargs[f.name] = bool(val)
            elif isinstance(default, int):
                kwargs[f.name] = int(val)
            elif isinstance(default, float):
                kwargs[f.name] = float(val)
            elif f.name == "z_score":
                kwargs[f.name] = None if val is None else float(val)
            else:
                kwargs[f.name] = val
        return cls(**kwargs)

    def to_dict(self) -> Dict:
        return {k.upper(): v for k, v in asdict(self).items()}

    def with_overrides(self, overrides: Optional[Dict]) -> "ScenarioConfig":
        return ScenarioConfig.from_dict(deep_merge(self.to_dict(), overrides))

    @property
    def z(self) -> float:
        """Safety factor; explicit ``Z_SCORE`` wins over the fill-rate quantile."""
        if self.z_score is not None:
            return float(self.z_score)
        return float(norm.ppf(self.target_fill_rate))


def apply_preset(base_cfg: ScenarioConfig, preset_name: str) -> ScenarioConfig:
    overrides = SCENARIO_REGISTRY.get(preset_name)
    if overrides is None:
        raise KeyError(f"Scenario preset '{preset_name}' not found")
    return base_cfg.with_overrides(overrides)


def _check_topology(topology: str) -> None:
    if topology not in TOPOLOGIES:
        raise ValueError(f"Unknown topology '{topology}', expected one of {TOPOLOGIES}")


# ---------------------------------------------------------------------------
# Network state
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Shipment:
    """Stock in motion from ``src`` to ``dst``, available on ``arrive_day``."""

    qty: int
    src: str
    dst: str
    arrive_day: int
    cost_per_unit: float

    def __post_init__(self) -> None:
        if self.qty <= 0:
            raise ValueError(f"Shipment quantity must be positive, got {self.qty}")


@dataclass
class NodeState:
    name: str
    on_hand: int = 0
    backorder: int = 0
    in_transit: List[Shipment] = field(default_factory=list)
    base_stock: int = 0
    last_review_ip: Optional[int] = None
    last_order_qty: int = 0

    @property
    def in_transit_qty(self) -> int:
        return sum(sh.qty for sh in self.in_transit)

    @property
    def inventory_position(self) -> int:
        return self.on_hand + self.in_transit_qty - self.backorder

    def reset(self) -> None:
        self.on_hand = self.base_stock
        self.backorder = 0
        self.in_transit = []
        self.last_review_ip = None
        self.last_order_qty = 0

    def __str__(self) -> str:
        return (
            f"{self.name}: OH={self.on_hand}, BO={self.backorder}, IT={self.in_transit_qty}, "
            f"IP={self.inventory_position}, S={self.base_stock}"
        )


@dataclass
class Network:
    """Node set owned by exactly one (replication, topology) run."""

    topology: str
    supplier: NodeState
    retailers: List[NodeState]
    warehouse: Optional[NodeState] = None

    @property
    def stocking_nodes(self) -> List[NodeState]:
        # Warehouse first: arrivals and costs are processed upstream to downstream.
        if self.warehouse is None:
            return list(self.retailers)
        return [self.warehouse, *self.retailers]


def build_network(cfg: ScenarioConfig, topology: str) -> Network:
    _check_topology(topology)
    retailers = [NodeState(f"Retailer_{i + 1}") for i in range(cfg.n_retailers)]
    warehouse = NodeState(WAREHOUSE) if topology == CENTRALIZED else None
    return Network(
        topology=topology,
        supplier=NodeState(MANUFACTURER),
        retailers=retailers,
        warehouse=warehouse,
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------
@dataclass
class Metrics:
    """Per-replication totals. Written by the daily cycle, read afterwards."""

    holding_cost: float = 0.0
    backorder_cost: float = 0.0
    transport_cost: float = 0.0
    orders_count: int = 0
    fill_immediate: int = 0
    demand_total: int = 0
    backorders_created: int = 0

    @property
    def fill_rate(self) -> float:
        if self.demand_total == 0:
            return 0.0
        return self.fill_immediate / self.demand_total

    @property
    def total_cost(self) -> float:
        return self.holding_cost + self.backorder_cost + self.transport_cost

    def as_dict(self) -> Dict[str, float]:
        return {
            "HoldingCost": self.holding_cost,
            "BackorderCost": self.backorder_cost,
            "TransportCost": self.transport_cost,
            "TotalCost": self.total_cost,
            "FillRate": self.fill_rate,
            "OrdersCount": self.orders_count,
            "FillImmediate": self.fill_immediate,
            "DemandTotal": self.demand_total,
            "BackordersCreated": self.backorders_created,
        }


@dataclass(frozen=True)
class SummaryMetrics:
    total_cost_per_day: float = 0.0
    fill_rate: float = 0.0
    avg_holding_cost_per_day: float = 0.0
    avg_backorder_cost_per_day: float = 0.0
    avg_transport_cost_per_day: float = 0.0
    avg_orders_per_day: float = 0.0
    replications: int = 0
    days: int = 0

    @classmethod
    def from_metrics(cls, results: Sequence[Metrics], t_days: int) -> "SummaryMetrics":
        """Reduce replications into per-day rates.

        Costs and orders are divided by ``t_days * len(results)``. The fill
        rate is pooled over all realized demand, so replications with more
        demand weigh more.
        """
        if not results:
            return cls()
        if t_days <= 0:
            raise ValueError(f"t_days must be positive, got {t_days!r}")
        periods = t_days * len(results)
        holding = sum(m.holding_cost for m in results)
        backorder = sum(m.backorder_cost for m in results)
        transport = sum(m.transport_cost for m in results)
        orders = sum(m.orders_count for m in results)
        served = sum(m.fill_immediate for m in results)
        demand = sum(m.demand_total for m in results)
        return cls(
            total_cost_per_day=(holding + backorder + transport) / periods,
            fill_rate=served / demand if demand > 0 else 0.0,
            avg_holding_cost_per_day=holding / periods,
            avg_backorder_cost_per_day=backorder / periods,
            avg_transport_cost_per_day=transport / periods,
            avg_orders_per_day=orders / periods,
            replications=len(results),
            days=t_days,
        )

    def as_dict(self) -> Dict[str, float]:
        return {
            "TotalCostPerDay": self.total_cost_per_day,
            "FillRate": self.fill_rate,
            "HoldingCostPerDay": self.avg_holding_cost_per_day,
            "BackorderCostPerDay": self.avg_backorder_cost_per_day,
            "TransportCostPerDay": self.avg_transport_cost_per_day,
            "OrdersPerDay": self.avg_orders_per_day,
        }


# ---------------------------------------------------------------------------
# Demand draws
# ---------------------------------------------------------------------------
def draw_demand(mu: float, sigma: float, rng: np.random.Generator) -> int:
    val = rng.normal(mu, sigma)
    return max(0, int(round(val)))


class _DailyDemand:
    """Per-retailer access to one day's draw vector.

    ``draw(i, day)`` draws the day's vector once and hands out its components.
    """

    def __init__(self, rng: np.random.Generator) -> None:
        self.rng = rng
        self._pending: Dict[int, List[int]] = {}

    def draw_day(self, day: int) -> List[int]:
        raise NotImplementedError

    def draw(self, retailer_index: int, day: int) -> int:
        if day not in self._pending:
            self._pending = {day: self.draw_day(day)}
        return self._pending[day][retailer_index]


class IndependentDemand(_DailyDemand):
    """One Normal draw per retailer per day; ``rho`` is not used for the draws."""

    def __init__(self, cfg: ScenarioConfig, rng: np.random.Generator) -> None:
        super().__init__(rng)
        self.mu = cfg.demand_mean_daily
        self.sigma = cfg.demand_sigma_daily
        self.n = cfg.n_retailers

    def draw_day(self, day: int) -> List[int]:
        return [draw_demand(self.mu, self.sigma, self.rng) for _ in range(self.n)]


class CorrelatedDemand(_DailyDemand):
    """Equicorrelated multivariate Normal draws across retailers.

    Eigen-decomposition is used instead of Cholesky so that ``rho = 1``
    (a singular covariance) is still a valid input.
    """

    def __init__(self, cfg: ScenarioConfig, rng: np.random.Generator) -> None:
        super().__init__(rng)
        n = cfg.n_retailers
        sigma = cfg.demand_sigma_daily
        rho = cfg.demand_correlation_rho
        self.n = n
        self.mean = np.full(n, cfg.demand_mean_daily, dtype=float)
        corr = np.full((n, n), rho, dtype=float)
        np.fill_diagonal(corr, 1.0)
        self.cov = corr * sigma * sigma

    def draw_day(self, day: int) -> List[int]:
        vals = self.rng.multivariate_normal(self.mean, self.cov, method="eigh")
        return [max(0, int(round(v))) for v in vals]


def make_demand_generator(cfg: ScenarioConfig, rng: np.random.Generator):
    if cfg.demand_draws == "correlated":
        return CorrelatedDemand(cfg, rng)
    if cfg.demand_draws == "independent":
        return IndependentDemand(cfg, rng)
    raise ValueError(f"Unsupported demand draw mode: {cfg.demand_draws}")


# ---------------------------------------------------------------------------
# Base-stock policy
# ---------------------------------------------------------------------------
def _round_target(value: float, label: str) -> int:
    target = int(round(value))
    if target < 0:
        logger.warning("Base stock for %s computed as %d; clamping to 0", label, target)
        return 0
    return target


def retailer_lead_time(cfg: ScenarioConfig, topology: str) -> int:
    _check_topology(topology)
    return cfg.lt_cw_to_retailer if topology == CENTRALIZED else cfg.lt_mfg_to_retailer


def retailer_base_stock(cfg: ScenarioConfig, topology: str) -> int:
    """S = mu*L + z*sigma*sqrt(L), L being the lead time from the retailer's supplier."""
    L = retailer_lead_time(cfg, topology)
    mu, sigma = cfg.demand_mean_daily, cfg.demand_sigma_daily
    return _round_target(mu * L + cfg.z * sigma * math.sqrt(L), "retailer")


def aggregate_sigma(cfg: ScenarioConfig) -> float:
    n = cfg.n_retailers
    var = cfg.demand_sigma_daily ** 2
    return math.sqrt(n * var + cfg.demand_correlation_rho * n * (n - 1) * var)


def warehouse_base_stock(cfg: ScenarioConfig) -> int:
    """Pooled target: N*mu*L_cw + z*sigma_agg*sqrt(L_cw)."""
    L = cfg.lt_mfg_to_cw
    mu_agg = cfg.n_retailers * cfg.demand_mean_daily
    return _round_target(mu_agg * L + cfg.z * aggregate_sigma(cfg) * math.sqrt(L), WAREHOUSE)


def compute_base_stocks(network: Network, cfg: ScenarioConfig) -> None:
    s_retail = retailer_base_stock(cfg, network.topology)
    for node in network.retailers:
        node.base_stock = s_retail
    if network.warehouse is not None:
        network.warehouse.base_stock = warehouse_base_stock(cfg)


def pooling_sweep(cfg: ScenarioConfig, rhos: Sequence[float]) -> pd.DataFrame:
    """Warehouse target and safety stock across demand correlations.

    ``IndependentSafetyStock`` is what N stand-alone buffers facing the same
    lead time would hold; the gap to ``PooledSafetyStock`` is the pooling
    benefit, which vanishes at ``rho = 1``.
    """

    rows: List[Dict[str, float]] = []
    for rho in rhos:
        c = cfg.with_overrides({"DEMAND_CORRELATION_RHO": float(rho)})
        root_l = math.sqrt(c.lt_mfg_to_cw)
        pooled = c.z * aggregate_sigma(c) * root_l
        separate = c.n_retailers * c.z * c.demand_sigma_daily * root_l
        rows.append({
            "Rho": float(rho),
            "SigmaAgg": aggregate_sigma(c),
            "WarehouseBaseStock": warehouse_base_stock(c),
            "PooledSafetyStock": pooled,
            "IndependentSafetyStock": separate,
            "PoolingBenefit": separate - pooled,
        })
    return pd.DataFrame(rows)


# ---------------------------------------------------------------------------
# Daily cycle
# ---------------------------------------------------------------------------
TRACE_COLUMNS = [
    "Day",
    "Node",
    "OnHand",
    "Backorder",
    "InTransit",
    "InventoryPosition",
    "BaseStock",
    "Demand",
    "Served",
    "OrderPlaced",
]


def receive_shipments(node: NodeState, day: int) -> int:
    arrived = 0
    remaining: List[Shipment] = []
    for sh in node.in_transit:
        if sh.arrive_day == day:
            arrived += sh.qty
        else:
            remaining.append(sh)
    node.in_transit = remaining
    node.on_hand += arrived
    return arrived


def clear_backorders(node: NodeState) -> int:
    if node.backorder > 0 and node.on_hand > 0:
        cleared = min(node.on_hand, node.backorder)
        node.on_hand -= cleared
        node.backorder -= cleared
        return cleared
    return 0


def fulfill_demand(node: NodeState, demand: int, metrics: Metrics) -> int:
    served = min(node.on_hand, demand)
    node.on_hand -= served
    shortage = demand - served
    node.backorder += shortage
    metrics.fill_immediate += served
    metrics.backorders_created += shortage
    metrics.demand_total += demand
    return served


def issue_stock(node: NodeState, qty: int) -> None:
    """Draw ``qty`` from ``node``; the uncovered part is booked as backorder."""
    issued = min(node.on_hand, qty)
    node.on_hand -= issued
    node.backorder += qty - issued


def place_order(
    node: NodeState,
    supplier: NodeState,
    lead: int,
    cost_per_unit: float,
    day: int,
    metrics: Metrics,
) -> int:
    """Order up to ``node.base_stock``; returns the quantity ordered (0 if none)."""
    ip = node.inventory_position
    qty = node.base_stock - ip
    node.last_review_ip = ip
    node.last_order_qty = 0
    if qty <= 0:
        return 0
    node.in_transit.append(Shipment(qty, supplier.name, node.name, day + lead, cost_per_unit))
    node.last_order_qty = qty
    metrics.transport_cost += qty * cost_per_unit
    metrics.orders_count += 1
    return qty


def accrue_costs(nodes: Iterable[NodeState], cfg: ScenarioConfig, metrics: Metrics) -> None:
    for node in nodes:
        metrics.holding_cost += node.on_hand * cfg.cost_holding_per_day
        metrics.backorder_cost += node.backorder * cfg.cost_backorder_per_day


def simulate_day(
    network: Network,
    cfg: ScenarioConfig,
    day: int,
    demand,
    metrics: Metrics,
    trace: Optional[List[Dict]] = None,
) -> None:
    """Advance ``network`` by one day.

    Order of steps: arrivals, backorder clearing, retailer demand, warehouse
    review (centralized), retailer review, cost accrual on end-of-day state.
    """

    nodes = network.stocking_nodes
    for node in nodes:
        receive_shipments(node, day)
    for node in nodes:
        clear_backorders(node)

    demands = demand.draw_day(day)
    realized: Dict[str, Tuple[int, int]] = {}
    for node, qty in zip(network.retailers, demands):
        realized[node.name] = (qty, fulfill_demand(node, qty, metrics))

    cw = network.warehouse
    if cw is not None:
        place_order(cw, network.supplier, cfg.lt_mfg_to_cw, cfg.cost_transport_inbound, day, metrics)
        upstream, lead, unit_cost = cw, cfg.lt_cw_to_retailer, cfg.cost_transport_outbound
    else:
        upstream, lead, unit_cost = network.supplier, cfg.lt_mfg_to_retailer, cfg.cost_transport_direct

    for node in network.retailers:
        qty = place_order(node, upstream, lead, unit_cost, day, metrics)
        if qty and cw is not None and cfg.warehouse_issues_stock:
            issue_stock(cw, qty)

    accrue_costs(nodes, cfg, metrics)

    if trace is not None:
        for node in nodes:
            d, served = realized.get(node.name, (0, 0))
            trace.append({
                "Day": day,
                "Node": node.name,
                "OnHand": node.on_hand,
                "Backorder": node.backorder,
                "InTransit": node.in_transit_qty,
                "InventoryPosition": node.inventory_position,
                "BaseStock": node.base_stock,
                "Demand": d,
                "Served": served,
                "OrderPlaced": node.last_order_qty,
            })


# ---------------------------------------------------------------------------
# Replications
# ---------------------------------------------------------------------------
def replication_seed(base_seed: int, index: int) -> int:
    return int(base_seed) + int(index)


def _draw_base_seed() -> int:
    return int(_rng(None).integers(low=0, high=2**31 - 1))


def run_replication(
    cfg: ScenarioConfig,
    topology: str,
    seed: Optional[int],
    *,
    trace: Optional[List[Dict]] = None,
) -> Metrics:
    """Simulate one full horizon on a freshly built network."""
    network = build_network(cfg, topology)
    compute_base_stocks(network, cfg)
    for node in network.stocking_nodes:
        node.reset()

    demand = make_demand_generator(cfg, _rng(seed))
    metrics = Metrics()
    for day in range(1, cfg.t_days + 1):
        simulate_day(network, cfg, day, demand, metrics, trace=trace)

    logger.debug(
        "%s replication seed=%s: total cost %.2f, fill rate %.4f, %d orders",
        topology, seed, metrics.total_cost, metrics.fill_rate, metrics.orders_count,
    )
    return metrics


def run_replications(
    cfg: ScenarioConfig,
    topology: str,
    base_seed: Optional[int] = None,
    *,
    progress_cb: Optional[Callable[[int, int], None]] = None,
) -> Tuple[List[Metrics], SummaryMetrics]:
    """Run ``cfg.r_replications`` independent replications of one topology.

    Replication ``i`` is seeded with ``base_seed + i`` so any single
    replication can be re-run on its own. ``None`` draws a base seed from OS
    entropy and logs it.
    """

    _check_topology(topology)
    if base_seed is None:
        base_seed = _draw_base_seed()
        logger.info("No base seed supplied; using %d", base_seed)
    if base_seed < 0:
        raise ValueError("base_seed must be non-negative")

    total = cfg.r_replications
    results: List[Metrics] = []
    for idx in range(total):
        if progress_cb:
            progress_cb(idx, total)
        results.append(run_replication(cfg, topology, replication_seed(base_seed, idx)))
    if progress_cb:
        progress_cb(total, total)
    return results, SummaryMetrics.from_metrics(results, cfg.t_days)


@dataclass
class ExperimentResult:
    base_seed: int
    runs: Dict[str, List[Metrics]]
    summaries: Dict[str, SummaryMetrics]

    def runs_frame(self) -> pd.DataFrame:
        return replications_frame(self.runs)

    def comparison_frame(self, baseline: str = DECENTRALIZED) -> pd.DataFrame:
        return compare_designs(self.summaries, baseline=baseline)


def run_experiment(
    cfg: ScenarioConfig,
    base_seed: Optional[int] = None,
    *,
    topologies: Sequence[str] = TOPOLOGIES,
    progress_cb: Optional[Callable[[int, int], None]] = None,
) -> ExperimentResult:
    """Run every topology with the same seeds (common random numbers)."""
    for topology in topologies:
        _check_topology(topology)
    if base_seed is None:
        base_seed = _draw_base_seed()
        logger.info("No base seed supplied; using %d", base_seed)

    logger.info(
        "Running %d replications x %d days for %s",
        cfg.r_replications, cfg.t_days, ", ".join(topologies),
    )
    runs: Dict[str, List[Metrics]] = {}
    summaries: Dict[str, SummaryMetrics] = {}
    for topology in topologies:
        runs[topology], summaries[topology] = run_replications(
            cfg, topology, base_seed, progress_cb=progress_cb
        )
        logger.info(
            "%s: %.2f cost/day, fill rate %.4f",
            topology, summaries[topology].total_cost_per_day, summaries[topology].fill_rate,
        )
    return ExperimentResult(base_seed=int(base_seed), runs=runs, summaries=summaries)


def run_trace(cfg: ScenarioConfig, topology: str, seed: Optional[int]) -> pd.DataFrame:
    """Daily per-node log of a single replication."""
    rows: List[Dict] = []
    run_replication(cfg, topology, seed, trace=rows)
    return pd.DataFrame(rows, columns=TRACE_COLUMNS)


# ---------------------------------------------------------------------------
# KPIs & comparisons
# ---------------------------------------------------------------------------
def replications_frame(runs: Dict[str, List[Metrics]]) -> pd.DataFrame:
    rows: List[Dict] = []
    for topology, results in runs.items():
        for idx, m in enumerate(results, start=1):
            rows.append({"Topology": topology, "run": idx, **m.as_dict()})
    return pd.DataFrame(rows)


def _summarize_group(kpis_df: pd.DataFrame, target_fill_rate: Optional[float]) -> pd.DataFrame:
    numeric_cols = [
        c for c in kpis_df.columns
        if c != "run" and pd.api.types.is_numeric_dtype(kpis_df[c])
    ]
    agg = kpis_df[numeric_cols].agg(["mean", "std", "min", "max"])
    quantiles = kpis_df[numeric_cols].quantile([0.05, 0.5, 0.95]).rename(index={0.05: "q05", 0.5: "q50", 0.95: "q95"})
    summary = pd.concat([agg, quantiles])

    extras = {}
    if "FillRate" in kpis_df.columns and target_fill_rate is not None:
        extras["FillRate_prob_below_target"] = (kpis_df["FillRate"] < target_fill_rate).mean()
        extras["FillRate_cvar05"] = _cvar(kpis_df["FillRate"], alpha=0.05, tail="lower")
    if "TotalCost" in kpis_df.columns:
        extras["TotalCost_var95"] = kpis_df["TotalCost"].quantile(0.95)
        extras["TotalCost_cvar95"] = _cvar(kpis_df["TotalCost"], alpha=0.95, tail="upper")

    if extras:
        summary = pd.concat([summary, pd.DataFrame(extras, index=["risk"])])

    return summary.reset_index().rename(columns={"index": "stat"})


def summarize_kpis(kpis_df: pd.DataFrame, target_fill_rate: Optional[float] = None) -> pd.DataFrame:
    """Spread of per-replication KPIs (mean/std/quantiles and tail risk), per topology."""

    if kpis_df.empty:
        return pd.DataFrame()
    if "Topology" not in kpis_df.columns:
        return _summarize_group(kpis_df, target_fill_rate)

    parts = []
    for topology, group in kpis_df.groupby("Topology", sort=False):
        part = _summarize_group(group.drop(columns=["Topology"]), target_fill_rate)
        part.insert(0, "Topology", topology)
        parts.append(part)
    return pd.concat(parts, ignore_index=True)


def compare_designs(summaries: Dict[str, SummaryMetrics], baseline: str = DECENTRALIZED) -> pd.DataFrame:
    df = pd.DataFrame([{"Topology": t, **s.as_dict()} for t, s in summaries.items()])
    if df.empty:
        return df
    mask_base = df["Topology"] == baseline
    base = (df[mask_base] if mask_base.any() else df).iloc[0].to_dict()

    for col in ["TotalCostPerDay", "FillRate", "HoldingCostPerDay", "BackorderCostPerDay",
                "TransportCostPerDay", "OrdersPerDay"]:
        df[f"{col}_delta"] = df[col] - base[col]
        df[f"{col}_delta_pct"] = (df[col] - base[col]) / base[col] if base[col] else np.nan
    return df


def generate_narrative(
    summaries: Dict[str, SummaryMetrics],
    *,
    baseline: str = DECENTRALIZED,
    candidate: str = CENTRALIZED,
    target_fill_rate: Optional[float] = None,
) -> Dict[str, str | List[str]]:
    """Short textual comparison of two designs."""

    base = summaries[baseline]
    cand = summaries[candidate]
    cost_delta = cand.total_cost_per_day - base.total_cost_per_day
    fr_delta = cand.fill_rate - base.fill_rate

    parts = []
    if abs(cost_delta) >= 0.01:
        pct = cost_delta / base.total_cost_per_day * 100 if base.total_cost_per_day else float("nan")
        parts.append(f"cost/day {'up' if cost_delta > 0 else 'down'} {abs(cost_delta):.2f} ({abs(pct):.1f}%)")
    if abs(fr_delta) >= 0.0005:
        parts.append(f"fill rate {'improves' if fr_delta >= 0 else 'drops'} by {abs(fr_delta) * 100:.1f} pts")
    if parts:
        headline = f"{candidate} vs {baseline}: " + ", ".join(parts) + "."
    else:
        headline = f"{candidate} performs similarly to {baseline}."

    bullets: List[str] = []
    for label, attr in [
        ("Holding", "avg_holding_cost_per_day"),
        ("Backorder", "avg_backorder_cost_per_day"),
        ("Transport", "avg_transport_cost_per_day"),
    ]:
        d = getattr(cand, attr) - getattr(base, attr)
        if abs(d) >= 0.01:
            bullets.append(f"{label} cost/day {'↑' if d > 0 else '↓'}{abs(d):.2f}")
    d_orders = cand.avg_orders_per_day - base.avg_orders_per_day
    if abs(d_orders) >= 0.01:
        bullets.append(f"Orders/day {'↑' if d_orders > 0 else '↓'}{abs(d_orders):.2f}")

    if target_fill_rate is not None:
        for name, s in ((baseline, base), (candidate, cand)):
            if s.fill_rate < target_fill_rate:
                bullets.append(f"⚠ {name} misses the {target_fill_rate:.2f} fill-rate target ({s.fill_rate:.3f}).")

    return {"headline": headline, "details": bullets}


# ---------------------------------------------------------------------------
# Plot helpers
# ---------------------------------------------------------------------------
def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _require_matplotlib() -> None:
    if plt is None:
        raise RuntimeError("matplotlib is required for plotting but is not available")


def save_inventory_plot(trace_df: pd.DataFrame, title: str, out_png: str) -> None:
    _require_matplotlib()
    plt.figure(figsize=(10, 4))
    for name, node_df in trace_df.groupby("Node", sort=False):
        plt.plot(node_df["Day"], node_df["OnHand"], lw=2, label=f"{name} on-hand")
        backlog = node_df[node_df["Backorder"] > 0]
        if not backlog.empty:
            plt.scatter(backlog["Day"], -backlog["Backorder"], marker="v", s=30)
    plt.axhline(0, color="grey", lw=0.8)
    plt.title(title)
    plt.xlabel("Day")
    plt.ylabel("Units (backorders below zero)")
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def save_cost_plot(comparison_df: pd.DataFrame, title: str, out_png: str) -> None:
    _require_matplotlib()
    parts = ["HoldingCostPerDay", "BackorderCostPerDay", "TransportCostPerDay"]
    plt.figure(figsize=(7, 4))
    bottom = np.zeros(len(comparison_df))
    for col in parts:
        vals = comparison_df[col].to_numpy(dtype=float)
        plt.bar(comparison_df["Topology"], vals, bottom=bottom, label=col.replace("PerDay", ""))
        bottom += vals
    plt.title(title)
    plt.ylabel("Cost / day")
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def save_pooling_plot(sweep_df: pd.DataFrame, title: str, out_png: str) -> None:
    _require_matplotlib()
    plt.figure(figsize=(8, 4))
    plt.plot(sweep_df["Rho"], sweep_df["PooledSafetyStock"], lw=2, label="Pooled (warehouse)")
    plt.plot(sweep_df["Rho"], sweep_df["IndependentSafetyStock"], lw=2, linestyle="--", label="Separate buffers")
    plt.title(title)
    plt.xlabel("Demand correlation ρ")
    plt.ylabel("Safety stock (units)")
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


__all__ = [
    "CENTRALIZED",
    "DECENTRALIZED",
    "TOPOLOGIES",
    "DEMAND_MODES",
    "SCENARIO_REGISTRY",
    "ScenarioConfig",
    "validate_config",
    "apply_preset",
    "deep_merge",
    "Shipment",
    "NodeState",
    "Network",
    "build_network",
    "Metrics",
    "SummaryMetrics",
    "draw_demand",
    "IndependentDemand",
    "CorrelatedDemand",
    "make_demand_generator",
    "retailer_lead_time",
    "retailer_base_stock",
    "aggregate_sigma",
    "warehouse_base_stock",
    "compute_base_stocks",
    "pooling_sweep",
    "TRACE_COLUMNS",
    "receive_shipments",
    "clear_backorders",
    "fulfill_demand",
    "issue_stock",
    "place_order",
    "accrue_costs",
    "simulate_day",
    "replication_seed",
    "run_replication",
    "run_replications",
    "ExperimentResult",
    "run_experiment",
    "run_trace",
    "replications_frame",
    "summarize_kpis",
    "compare_designs",
    "generate_narrative",
    "ensure_dir",
    "save_inventory_plot",
    "save_cost_plot",
    "save_pooling_plot",
]
