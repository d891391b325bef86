"""Rank diagram variables by structural intervention value.

Heuristics a node can satisfy:

- ``loop_multiplicity``: lies on 2 or more feedback loops.
- ``mixed_loops``: lies on both reinforcing and balancing loops.
- ``dominant_loop_counterweight``: its weakly connected component has more
  reinforcing than balancing loops (and at least one balancing loop), and the
  node lies on every balancing loop of that component.
- ``coupling_hub``: combined in+out degree of at least ``HUB_DEGREE`` links
  (parallel links counted), regardless of loop membership.

Impact tiers:

- high: on 2+ loops, or a counterweight, or 3+ heuristics satisfied
- medium: on exactly one loop, or at least one heuristic satisfied
- low: everything else

Only nodes touching at least one link are ranked. Components are scored
independently; no threshold depends on the rest of the graph.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Sequence, Set

import networkx as nx

from ..graph.builder import GraphView
from ..knowledge.types import FeedbackLoop, LeveragePoint

HUB_DEGREE = 4

LOOP_WEIGHT = 2
MIXED_WEIGHT = 2
COUNTERWEIGHT_WEIGHT = 3
HUB_WEIGHT = 1

TIER_ORDER = {"high": 0, "medium": 1, "low": 2}


def impact_tier(loop_count: int, heuristics: Sequence[str]) -> str:
    if (
        loop_count >= 2
        or "dominant_loop_counterweight" in heuristics
        or len(heuristics) >= 3
    ):
        return "high"
    if loop_count == 1 or heuristics:
        return "medium"
    return "low"


def _counterweight_nodes(G: nx.MultiDiGraph, loops: Sequence[FeedbackLoop]) -> Dict[str, Dict[str, int]]:
    """Return counterweight node -> {"reinforcing": R, "balancing": B} of its component."""
    flagged: Dict[str, Dict[str, int]] = {}
    for component in nx.weakly_connected_components(G):
        comp_loops = [l for l in loops if l.nodes[0] in component]
        reinforcing = [l for l in comp_loops if l.type == "reinforcing"]
        balancing = [l for l in comp_loops if l.type == "balancing"]
        if not balancing or len(reinforcing) <= len(balancing):
            continue
        common: Set[str] = set(balancing[0].nodes)
        for loop in balancing[1:]:
            common &= set(loop.nodes)
        for node_id in common:
            flagged[node_id] = {"reinforcing": len(reinforcing), "balancing": len(balancing)}
    return flagged


def identify_leverage_points(
    view: GraphView, loops: Sequence[FeedbackLoop]
) -> List[LeveragePoint]:
    """Score every linked node and return leverage points, best first."""
    G = view.to_networkx()
    loops_by_node: Dict[str, List[FeedbackLoop]] = defaultdict(list)
    for loop in loops:
        for node_id in loop.nodes:
            loops_by_node[node_id].append(loop)
    counterweights = _counterweight_nodes(G, loops)

    ranked = []
    for node_id, node in view.nodes.items():
        degree = G.degree(node_id)
        if degree == 0:
            continue
        node_loops = loops_by_node.get(node_id, [])
        n_reinforcing = sum(1 for l in node_loops if l.type == "reinforcing")
        n_balancing = len(node_loops) - n_reinforcing

        heuristics: List[str] = []
        score = LOOP_WEIGHT * len(node_loops)
        if len(node_loops) >= 2:
            heuristics.append("loop_multiplicity")
        if n_reinforcing and n_balancing:
            heuristics.append("mixed_loops")
            score += MIXED_WEIGHT
        if node_id in counterweights:
            heuristics.append("dominant_loop_counterweight")
            score += COUNTERWEIGHT_WEIGHT
        if degree >= HUB_DEGREE:
            heuristics.append("coupling_hub")
            score += HUB_WEIGHT

        label = node.label
        if node_id in counterweights:
            counts = counterweights[node_id]
            lp_type = "dominant-loop-counterweight"
            description = (
                f"'{label}' lies on every balancing loop ({counts['balancing']}) of a structure "
                f"dominated by {counts['reinforcing']} reinforcing loop(s); strengthening or "
                f"weakening it shifts the balance of the whole structure."
            )
        elif "mixed_loops" in heuristics:
            lp_type = "mixed-loop-junction"
            description = (
                f"'{label}' couples {n_reinforcing} reinforcing and {n_balancing} balancing "
                f"loop(s); an intervention here acts on growth and correction at once."
            )
        elif "loop_multiplicity" in heuristics:
            lp_type = "shared-loop-node"
            description = (
                f"'{label}' is shared across {len(node_loops)} feedback loops; intervening "
                f"here affects all of them simultaneously."
            )
        elif "coupling_hub" in heuristics:
            lp_type = "coupling-hub"
            description = (
                f"'{label}' is a high fan-in/fan-out hub with {degree} causal links coupling "
                f"otherwise separate parts of the diagram."
            )
        elif node_loops:
            lp_type = "single-loop-member"
            description = (
                f"'{label}' sits on a single {node_loops[0].type} loop ({node_loops[0].id})."
            )
        else:
            lp_type = "peripheral-variable"
            description = f"'{label}' is outside every feedback loop with {degree} causal link(s)."

        point = LeveragePoint(
            id=f"LP-{node_id}",
            node_id=node_id,
            type=lp_type,
            impact=impact_tier(len(node_loops), heuristics),
            description=description,
            score=score,
            heuristics=heuristics,
            loop_ids=sorted(l.id for l in node_loops),
        )
        ranked.append((TIER_ORDER[point.impact], -score, -degree, node_id, point))

    ranked.sort(key=lambda item: item[:4])
    return [item[-1] for item in ranked]
