from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import networkx as nx

from ..knowledge.types import CausalLink, CldNode, SwotEntry

logger = logging.getLogger(__name__)


class GraphError(ValueError):
    """Raised when an edit would break the diagram's invariants."""


@dataclass(frozen=True)
class GraphView:
    """Read-only snapshot of a diagram handed to the analysis stages."""

    nodes: Mapping[str, CldNode]
    links: Tuple[CausalLink, ...]

    def to_networkx(self) -> nx.MultiDiGraph:
        """Build a multigraph keyed by link ID so parallel links stay distinct."""
        G = nx.MultiDiGraph()
        for node_id, node in self.nodes.items():
            G.add_node(node_id, label=node.label, category=node.category)
        for link in self.links:
            G.add_edge(
                link.source_id,
                link.target_id,
                key=link.id,
                polarity=link.polarity,
                has_delay=link.has_delay,
            )
        return G


class CausalGraph:
    """Editable causal loop diagram.

    Only endpoint existence and ID uniqueness are enforced. Cycles and
    parallel links are legal; a rejected edit leaves the document unchanged.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, CldNode] = {}
        self._links: List[CausalLink] = []

    @classmethod
    def from_parts(
        cls, nodes: Iterable[CldNode], links: Iterable[CausalLink]
    ) -> "CausalGraph":
        graph = cls()
        for node in nodes:
            graph.add_node(node)
        for link in links:
            graph.add_link(link)
        return graph

    @classmethod
    def from_workbook(cls, workbook) -> "CausalGraph":
        return cls.from_parts(workbook.nodes, workbook.links)

    # -- read side -------------------------------------------------------

    @property
    def nodes(self) -> Mapping[str, CldNode]:
        return MappingProxyType(self._nodes)

    @property
    def links(self) -> Tuple[CausalLink, ...]:
        return tuple(self._links)

    def view(self) -> GraphView:
        return GraphView(nodes=MappingProxyType(dict(self._nodes)), links=tuple(self._links))

    def to_networkx(self) -> nx.MultiDiGraph:
        return self.view().to_networkx()

    def get_link(self, link_id: str) -> CausalLink:
        for link in self._links:
            if link.id == link_id:
                return link
        raise GraphError(f"Unknown link: {link_id}")

    # -- nodes -----------------------------------------------------------

    def add_node(self, node: CldNode) -> CldNode:
        if node.id in self._nodes:
            raise GraphError(f"Duplicate node id: {node.id}")
        self._nodes[node.id] = node
        return node

    def add_node_from_swot(
        self, entry: SwotEntry, node_id: Optional[str] = None, x: float = 0.0, y: float = 0.0
    ) -> CldNode:
        """Derive a node 1:1 from a SWOT entry, inheriting category and kind."""
        node = CldNode(
            id=node_id or f"node-{entry.id}",
            swot_item_id=entry.id,
            label=entry.text[:50],
            category=entry.category,
            node_type=entry.variable_type,
            x=x,
            y=y,
        )
        return self.add_node(node)

    def remove_node(self, node_id: str) -> List[CausalLink]:
        """Delete a node and every link touching it. Returns the removed links."""
        if node_id not in self._nodes:
            raise GraphError(f"Unknown node: {node_id}")
        removed = [l for l in self._links if node_id in (l.source_id, l.target_id)]
        self._links = [l for l in self._links if node_id not in (l.source_id, l.target_id)]
        del self._nodes[node_id]
        if removed:
            logger.debug(f"Removed node {node_id} and {len(removed)} incident link(s)")
        return removed

    # -- links -----------------------------------------------------------

    def add_link(self, link: CausalLink) -> CausalLink:
        missing = [n for n in (link.source_id, link.target_id) if n not in self._nodes]
        if missing:
            raise GraphError(
                f"Link {link.id} references missing node(s): {', '.join(missing)}"
            )
        if link.source_id == link.target_id:
            raise GraphError(f"Link {link.id} is a self-link on {link.source_id}")
        if any(l.id == link.id for l in self._links):
            raise GraphError(f"Duplicate link id: {link.id}")
        self._links.append(link)
        return link

    def remove_link(self, link_id: str) -> CausalLink:
        link = self.get_link(link_id)
        self._links.remove(link)
        return link

    def update_link(
        self,
        link_id: str,
        *,
        polarity: Optional[str] = None,
        has_delay: Optional[bool] = None,
    ) -> CausalLink:
        """Change polarity and/or delay of a link in place (order preserved)."""
        current = self.get_link(link_id)
        changes = {}
        if polarity is not None:
            if polarity not in ("same", "opposite"):
                raise GraphError(f"Invalid polarity for {link_id}: {polarity!r}")
            changes["polarity"] = polarity
        if has_delay is not None:
            changes["has_delay"] = bool(has_delay)
        updated = current.model_copy(update=changes)
        self._links[self._links.index(current)] = updated
        return updated

    def toggle_polarity(self, link_id: str) -> CausalLink:
        link = self.get_link(link_id)
        return self.update_link(
            link_id, polarity="opposite" if link.polarity == "same" else "same"
        )

    def toggle_delay(self, link_id: str) -> CausalLink:
        link = self.get_link(link_id)
        return self.update_link(link_id, has_delay=not link.has_delay)
