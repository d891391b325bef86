from __future__ import annotations

from typing import Dict, List, Mapping, Optional, Sequence

from ..graph.builder import GraphView
from ..graph.loops import Cycle, CycleEnumeration, EnumerationLimits, enumerate_cycles
from ..knowledge.types import CausalLink, CldNode, FeedbackLoop

POLARITY_SIGN = {"same": 1, "opposite": -1}


def loop_sign(links: Sequence[CausalLink]) -> int:
    sign = 1
    for link in links:
        sign *= POLARITY_SIGN[link.polarity]
    return sign


def _describe_cycle(labels: Sequence[str], loop_type: str) -> str:
    if not labels:
        return ""
    ordered = list(labels) + [labels[0]]
    return f"{' → '.join(ordered)} ({loop_type})"


def classify_cycle(
    cycle: Cycle,
    nodes: Mapping[str, CldNode],
    links_by_id: Mapping[str, CausalLink],
    loop_id: str,
) -> FeedbackLoop:
    """Label a cycle reinforcing (even number of opposite links) or balancing."""
    cycle_links = [links_by_id[lid] for lid in cycle.link_ids]
    opposite = sum(1 for l in cycle_links if l.polarity == "opposite")
    loop_type = "reinforcing" if loop_sign(cycle_links) > 0 else "balancing"
    labels = [nodes[n].label if n in nodes else n for n in cycle.nodes]
    return FeedbackLoop(
        id=loop_id,
        nodes=list(cycle.nodes),
        link_ids=list(cycle.link_ids),
        type=loop_type,
        description=_describe_cycle(labels, loop_type),
        opposite_links=opposite,
        has_delay=any(l.has_delay for l in cycle_links),
    )


def classify_cycles(view: GraphView, enumeration: CycleEnumeration) -> List[FeedbackLoop]:
    links_by_id = {l.id: l for l in view.links}
    return [
        classify_cycle(cycle, view.nodes, links_by_id, f"L{idx:02d}")
        for idx, cycle in enumerate(enumeration.cycles, start=1)
    ]


def detect_loops(
    view: GraphView, limits: Optional[EnumerationLimits] = None
) -> tuple[List[FeedbackLoop], CycleEnumeration]:
    enumeration = enumerate_cycles(view.nodes, view.links, limits)
    return classify_cycles(view, enumeration), enumeration


def loops_payload(loops: Sequence[FeedbackLoop], truncated: bool, notes: Sequence[str]) -> Dict:
    payload: Dict[str, object] = {
        "reinforcing": [l.model_dump() for l in loops if l.type == "reinforcing"],
        "balancing": [l.model_dump() for l in loops if l.type == "balancing"],
        "truncated": truncated,
        "notes": list(notes),
    }
    return payload
