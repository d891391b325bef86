from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence, Set, Tuple

from ..knowledge.types import CausalLink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnumerationLimits:
    """Ceilings that make cycle enumeration fail closed on oversized graphs.

    - `max_nodes`: graphs with more nodes are not searched at all.
    - `max_cycles`: stop after this many distinct cycles.
    - `max_steps`: stop after this many DFS edge expansions.
    """

    max_nodes: int = 60
    max_cycles: int = 500
    max_steps: int = 200_000


@dataclass(frozen=True)
class Cycle:
    nodes: Tuple[str, ...]
    link_ids: Tuple[str, ...]


@dataclass
class CycleEnumeration:
    cycles: List[Cycle] = field(default_factory=list)
    truncated: bool = False
    notes: List[str] = field(default_factory=list)


def canonical_cycle(
    nodes: Sequence[str], link_ids: Sequence[str]
) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Rotate a cycle so its smallest node ID comes first, keeping direction.

    `link_ids[i]` is the link leaving `nodes[i]`, so both sequences rotate together.
    """
    if not nodes:
        return tuple(), tuple()
    start = min(range(len(nodes)), key=lambda idx: nodes[idx])
    n = len(nodes)
    return (
        tuple(nodes[(start + i) % n] for i in range(n)),
        tuple(link_ids[(start + i) % n] for i in range(n)),
    )


def _adjacency(
    node_ids: Iterable[str], links: Iterable[CausalLink]
) -> Dict[str, List[Tuple[str, str]]]:
    adj: Dict[str, List[Tuple[str, str]]] = {n: [] for n in node_ids}
    for link in links:
        if link.source_id == link.target_id:
            continue
        if link.source_id not in adj or link.target_id not in adj:
            # The graph model rejects these; a raw link list may still carry one.
            raise ValueError(f"Link {link.id} references a node outside the graph")
        adj[link.source_id].append((link.target_id, link.id))
    for targets in adj.values():
        targets.sort()
    return adj


def enumerate_cycles(
    nodes: Mapping[str, object] | Iterable[str],
    links: Sequence[CausalLink],
    limits: EnumerationLimits | None = None,
) -> CycleEnumeration:
    """Find every simple directed cycle, distinguishing parallel links.

    A DFS starts from each node in sorted order and only walks through nodes
    that sort after the start, so every cycle is produced once, from its
    smallest node. Path depth is bounded by the node count. Hitting a limit
    returns what was found so far with `truncated=True`.
    """
    limits = limits or EnumerationLimits()
    node_ids = sorted(nodes)
    result = CycleEnumeration()

    if not links:
        return result

    if len(node_ids) > limits.max_nodes:
        result.truncated = True
        result.notes.append(
            f"Graph has {len(node_ids)} variables (> {limits.max_nodes}); loop detection skipped."
        )
        logger.warning(result.notes[-1])
        return result

    adj = _adjacency(node_ids, links)
    seen: Set[Tuple[Tuple[str, ...], Tuple[str, ...]]] = set()
    steps = 0

    for start in node_ids:
        # Each stack frame: (node, index of next outgoing edge to try)
        path_nodes: List[str] = [start]
        path_links: List[str] = []
        on_path: Set[str] = {start}
        stack: List[List] = [[start, 0]]

        while stack:
            frame = stack[-1]
            node, idx = frame
            outgoing = adj[node]
            if idx >= len(outgoing) or len(path_nodes) > len(node_ids):
                stack.pop()
                path_nodes.pop()
                on_path.discard(node)
                if path_links:
                    path_links.pop()
                continue
            frame[1] += 1
            target, link_id = outgoing[idx]

            steps += 1
            if steps > limits.max_steps:
                result.truncated = True
                result.notes.append(
                    f"Loop detection stopped after {limits.max_steps} search steps; results are partial."
                )
                logger.warning(result.notes[-1])
                return _finish(result)

            if target == start:
                key = canonical_cycle(path_nodes, path_links + [link_id])
                if key not in seen:
                    if len(result.cycles) >= limits.max_cycles:
                        # Only a loop beyond the cap makes the result partial
                        result.truncated = True
                        result.notes.append(
                            f"Truncated loop detection after {limits.max_cycles} loops."
                        )
                        logger.warning(result.notes[-1])
                        return _finish(result)
                    seen.add(key)
                    result.cycles.append(Cycle(nodes=key[0], link_ids=key[1]))
                continue
            if target < start or target in on_path:
                continue
            path_nodes.append(target)
            path_links.append(link_id)
            on_path.add(target)
            stack.append([target, 0])

    return _finish(result)


def _finish(result: CycleEnumeration) -> CycleEnumeration:
    result.cycles.sort(key=lambda c: (len(c.nodes), c.nodes, c.link_ids))
    return result
