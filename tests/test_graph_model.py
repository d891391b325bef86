import unittest

from cld_engine.graph.builder import CausalGraph, GraphError
from cld_engine.knowledge.types import CausalLink, CldNode, SwotEntry


def _node(node_id: str) -> CldNode:
    return CldNode(id=node_id, label=node_id.upper(), category="strength")


class CausalGraphTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.graph = CausalGraph()
        for n in ("a", "b", "c"):
            self.graph.add_node(_node(n))
        self.graph.add_link(CausalLink(id="l1", source_id="a", target_id="b"))
        self.graph.add_link(CausalLink(id="l2", source_id="b", target_id="c", polarity="opposite"))
        self.graph.add_link(CausalLink(id="l3", source_id="c", target_id="a"))

    def test_link_to_missing_node_is_rejected(self) -> None:
        before = self.graph.links
        with self.assertRaises(GraphError):
            self.graph.add_link(CausalLink(id="bad", source_id="a", target_id="zzz"))
        self.assertEqual(self.graph.links, before)

    def test_self_link_is_rejected(self) -> None:
        with self.assertRaises(GraphError):
            self.graph.add_link(CausalLink(id="self", source_id="a", target_id="a"))

    def test_duplicate_ids_are_rejected(self) -> None:
        with self.assertRaises(GraphError):
            self.graph.add_node(_node("a"))
        with self.assertRaises(GraphError):
            self.graph.add_link(CausalLink(id="l1", source_id="b", target_id="a"))

    def test_parallel_links_are_kept(self) -> None:
        self.graph.add_link(CausalLink(id="l4", source_id="a", target_id="b", polarity="opposite"))
        G = self.graph.to_networkx()
        self.assertEqual(G.number_of_edges("a", "b"), 2)
        self.assertEqual(len(self.graph.links), 4)

    def test_remove_node_cascades_to_links(self) -> None:
        removed = self.graph.remove_node("b")
        self.assertEqual({l.id for l in removed}, {"l1", "l2"})
        self.assertNotIn("b", self.graph.nodes)
        self.assertEqual([l.id for l in self.graph.links], ["l3"])
        with self.assertRaises(GraphError):
            self.graph.remove_node("b")

    def test_remove_link(self) -> None:
        self.graph.remove_link("l2")
        self.assertEqual([l.id for l in self.graph.links], ["l1", "l3"])
        with self.assertRaises(GraphError):
            self.graph.remove_link("l2")

    def test_update_link_keeps_order(self) -> None:
        updated = self.graph.update_link("l2", polarity="same", has_delay=True)
        self.assertEqual(updated.polarity, "same")
        self.assertTrue(updated.has_delay)
        self.assertEqual([l.id for l in self.graph.links], ["l1", "l2", "l3"])
        with self.assertRaises(GraphError):
            self.graph.update_link("l2", polarity="positive")

    def test_toggles(self) -> None:
        self.assertEqual(self.graph.toggle_polarity("l1").polarity, "opposite")
        self.assertEqual(self.graph.toggle_polarity("l1").polarity, "same")
        self.assertTrue(self.graph.toggle_delay("l3").has_delay)

    def test_node_from_swot_inherits_metadata(self) -> None:
        entry = SwotEntry(
            id="s1",
            category="threat",
            text="New regulatory changes affecting every export market we operate in today",
            variable_type="flow",
        )
        node = self.graph.add_node_from_swot(entry)
        self.assertEqual(node.id, "node-s1")
        self.assertEqual(node.swot_item_id, "s1")
        self.assertEqual(node.category, "threat")
        self.assertEqual(node.node_type, "flow")
        self.assertEqual(len(node.label), 50)

    def test_view_is_a_snapshot(self) -> None:
        view = self.graph.view()
        self.graph.remove_node("a")
        self.assertIn("a", view.nodes)
        self.assertEqual(len(view.links), 3)
        with self.assertRaises(TypeError):
            view.nodes["x"] = _node("x")  # type: ignore[index]


if __name__ == "__main__":
    unittest.main()
