"""Synthesize strategic intervention options from leverage points."""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..graph.builder import GraphView
from ..knowledge.types import (
    FeedbackLoop,
    LeveragePoint,
    PoliticalEconomy,
    StrategicOption,
    SwotEntry,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeasibilityRule:
    dimension: str
    time_horizon: str
    adjustment: int
    rationale: str


# Policy table, not a law: tune with product owners. Each SWOT entry behind an
# option scores the adjustment of its (dimension, horizon) row; the option's
# feasibility is the mean over its entries (>= 0.5 high, <= -0.5 low).
FEASIBILITY_RULES: Tuple[FeasibilityRule, ...] = (
    FeasibilityRule("power", "short-term", 1, "existing authority can act quickly"),
    FeasibilityRule("power", "medium-term", 1, "existing authority can be mobilised"),
    FeasibilityRule("power", "long-term", 0, "authority may shift before results land"),
    FeasibilityRule("incentives", "short-term", 1, "incentives can be re-priced quickly"),
    FeasibilityRule("incentives", "medium-term", 0, "incentive changes need a budget cycle"),
    FeasibilityRule("incentives", "long-term", 0, "behaviour adapts slowly to incentives"),
    FeasibilityRule("resources", "short-term", 0, "resources can be reallocated"),
    FeasibilityRule("resources", "medium-term", 0, "resources must be planned"),
    FeasibilityRule("resources", "long-term", -1, "sustained investment is required"),
    FeasibilityRule("institutions", "short-term", 0, "minor rule changes are possible"),
    FeasibilityRule("institutions", "medium-term", -1, "institutional reform is slow"),
    FeasibilityRule("institutions", "long-term", -1, "norms and rules change over years"),
)

HIGH_FEASIBILITY = 0.5
LOW_FEASIBILITY = -0.5

HORIZON_LABELS = {
    "short-term": "Short-term (< 6 months)",
    "medium-term": "Medium-term (6-18 months)",
    "long-term": "Long-term (> 18 months)",
}
HORIZON_ORDER = ("short-term", "medium-term", "long-term")

TITLE_TEMPLATES = {
    "dominant-loop-counterweight": "Strengthen the counterweight at '{label}'",
    "mixed-loop-junction": "Rebalance the loop junction at '{label}'",
    "shared-loop-node": "Intervene at shared variable '{label}'",
    "coupling-hub": "Leverage coupling hub '{label}'",
}


def find_rule(dimension: str, time_horizon: str) -> Optional[FeasibilityRule]:
    for rule in FEASIBILITY_RULES:
        if rule.dimension == dimension and rule.time_horizon == time_horizon:
            return rule
    return None


def feasibility_for(entries: Sequence[SwotEntry]) -> str:
    """Map contributing SWOT entries to a feasibility tier via `FEASIBILITY_RULES`."""
    if not entries:
        return "medium"
    total = 0
    for entry in entries:
        rule = find_rule(entry.political_dimension, entry.time_horizon)
        total += rule.adjustment if rule else 0
    mean = total / len(entries)
    if mean >= HIGH_FEASIBILITY:
        return "high"
    if mean <= LOW_FEASIBILITY:
        return "low"
    return "medium"


def _join(names: Iterable[str]) -> str:
    names = list(names)
    if len(names) <= 1:
        return "".join(names)
    return ", ".join(names[:-1]) + " and " + names[-1]


def political_economy_for(
    entries: Sequence[SwotEntry], loops: Sequence[FeedbackLoop]
) -> PoliticalEconomy:
    """Aggregate stakeholder and dimension metadata into the four narrative fields."""
    stakeholders = sorted({e.stakeholder.strip() for e in entries if e.stakeholder.strip()})
    dims = Counter(e.political_dimension for e in entries)

    power = [e for e in entries if e.political_dimension == "power"]
    if power:
        holders = sorted({e.stakeholder.strip() for e in power if e.stakeholder.strip()})
        power_alignment = (
            f"Draws on {len(power)} power-related variable(s) held by "
            f"{_join(holders) or 'unnamed actors'}; secure their backing before acting."
        )
    elif stakeholders:
        power_alignment = f"No power variable involved; authority rests with {_join(stakeholders)}."
    else:
        power_alignment = "No power holders identified; map authority over these variables first."

    institutional = [e for e in entries if e.political_dimension == "institutions"]
    if institutional:
        enabling = sum(1 for e in institutional if e.category in ("strength", "opportunity"))
        constraining = len(institutional) - enabling
        institutional_capacity = (
            f"Involves {len(institutional)} institutional variable(s): {enabling} enabling, "
            f"{constraining} constraining."
        )
    else:
        institutional_capacity = "No institutional variables involved; relies on existing rules and capacity."

    if entries:
        present = {e.time_horizon for e in entries}
        longest = max(present, key=HORIZON_ORDER.index)
        time_horizon = HORIZON_LABELS[longest]
        if len(present) > 1:
            spread = ", ".join(h for h in HORIZON_ORDER if h in present)
            time_horizon += f"; variables span {spread}"
    else:
        time_horizon = "Unspecified; no SWOT metadata behind these variables"
    delayed = sum(1 for l in loops if l.has_delay)
    if delayed:
        time_horizon += f"; {delayed} delayed loop(s) will postpone visible results"

    if stakeholders:
        stakeholder_coalition = f"Coalition of {_join(stakeholders)}"
        levers = []
        if dims.get("incentives"):
            levers.append(f"{dims['incentives']} incentive")
        if dims.get("resources"):
            levers.append(f"{dims['resources']} resource")
        if levers:
            stakeholder_coalition += f", aligned through {_join(levers)} lever(s)"
    else:
        stakeholder_coalition = "Coalition to be identified; no stakeholders recorded"

    return PoliticalEconomy(
        power_alignment=power_alignment,
        institutional_capacity=institutional_capacity,
        time_horizon=time_horizon,
        stakeholder_coalition=stakeholder_coalition,
    )


def _title(lead: LeveragePoint, label: str, loops: Sequence[FeedbackLoop]) -> str:
    template = TITLE_TEMPLATES.get(lead.type)
    if template:
        return template.format(label=label)
    if loops and loops[0].type == "reinforcing":
        return f"Break or harness the reinforcing loop at '{label}'"
    if loops:
        return f"Reinforce the balancing loop at '{label}'"
    return f"Monitor '{label}'"


def _describe(
    lead: LeveragePoint, labels: Sequence[str], loops: Sequence[FeedbackLoop]
) -> str:
    parts = [lead.description]
    if loops:
        parts.append("Touches " + "; ".join(l.description for l in loops) + ".")
    if any(l.type == "reinforcing" for l in loops):
        parts.append(
            "Reinforcing loops amplify change: damping them halts vicious cycles, "
            "feeding them accelerates virtuous ones."
        )
    if any(l.type == "balancing" for l in loops):
        parts.append(
            "Balancing loops resist change: strengthening them stabilises the system, "
            "weakening them removes resistance to the desired shift."
        )
    if len(labels) > 1:
        parts.append(f"Also addresses {_join(labels[1:])}.")
    return " ".join(parts)


def synthesize_options(
    view: GraphView,
    loops: Sequence[FeedbackLoop],
    leverage_points: Sequence[LeveragePoint],
    swot: Mapping[str, SwotEntry] | Sequence[SwotEntry],
) -> List[StrategicOption]:
    """Build one option per group of high/medium leverage points.

    Points touching exactly the same loops form one group, so overlapping
    points are merged rather than emitted as near-duplicates. Points whose
    node or SWOT entry no longer exists are skipped.
    """
    if not isinstance(swot, Mapping):
        swot = {e.id: e for e in swot}
    loops_by_id = {l.id: l for l in loops}

    groups: Dict[Tuple[str, ...], List[Tuple[LeveragePoint, Optional[SwotEntry]]]] = {}
    for point in leverage_points:
        if point.impact == "low":
            continue
        node = view.nodes.get(point.node_id)
        if node is None:
            logger.warning(f"Skipping leverage point {point.id}: node {point.node_id} no longer exists")
            continue
        entry = None
        if node.swot_item_id is not None:
            entry = swot.get(node.swot_item_id)
            if entry is None:
                logger.warning(
                    f"Skipping leverage point {point.id}: SWOT entry {node.swot_item_id} was deleted"
                )
                continue
        key = tuple(point.loop_ids) if point.loop_ids else ("node", point.node_id)
        groups.setdefault(key, []).append((point, entry))

    options: List[StrategicOption] = []
    for members in groups.values():
        lead = members[0][0]
        labels = [view.nodes[p.node_id].label for p, _ in members]
        entries = [e for _, e in members if e is not None]
        touched = [loops_by_id[lid] for lid in lead.loop_ids if lid in loops_by_id]
        options.append(
            StrategicOption(
                id=f"OPT-{lead.node_id}",
                title=_title(lead, labels[0], touched),
                description=_describe(lead, labels, touched),
                feasibility=feasibility_for(entries),
                political_economy=political_economy_for(entries, touched),
                leverage_points=[p.id for p, _ in members],
            )
        )
    return options
