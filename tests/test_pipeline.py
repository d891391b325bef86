import json
import tempfile
import unittest
from pathlib import Path

import yaml

from cld_engine.config import PACKAGE_DIR, AppConfig
from cld_engine.graph.builder import CausalGraph
from cld_engine.graph.loops import EnumerationLimits
from cld_engine.knowledge.loader import parse_workbook
from cld_engine.knowledge.types import CausalLink, CldNode, SwotEntry
from cld_engine.orchestrator import Analyzer, analyze, build_graph, run_pipeline
from cld_engine.paths import for_project
from cld_engine.provenance.store import read_events

WORKBOOK = {
    "swot": [
        {"id": "s1", "category": "strength", "text": "Skilled workforce", "political_dimension": "resources",
         "time_horizon": "long-term", "stakeholder": "Employers"},
        {"id": "s2", "category": "opportunity", "text": "Export demand", "political_dimension": "incentives",
         "time_horizon": "short-term", "stakeholder": "Exporters"},
        {"id": "s3", "category": "threat", "text": "Wage inflation", "political_dimension": "power",
         "time_horizon": "medium-term", "stakeholder": "Unions"},
    ],
    "nodes": [
        {"id": "workforce", "swot_item_id": "s1", "label": "Skilled workforce", "category": "strength"},
        {"id": "demand", "swot_item_id": "s2", "label": "Export demand", "category": "opportunity"},
        {"id": "wages", "swot_item_id": "s3", "label": "Wage inflation", "category": "threat"},
    ],
    "links": [
        {"id": "l1", "source_id": "workforce", "target_id": "demand", "polarity": "same"},
        {"id": "l2", "source_id": "demand", "target_id": "workforce", "polarity": "same"},
        {"id": "l3", "source_id": "demand", "target_id": "wages", "polarity": "same"},
        {"id": "l4", "source_id": "wages", "target_id": "demand", "polarity": "opposite", "has_delay": True},
    ],
    "archetypes": [],
}


def make_config(root: Path) -> AppConfig:
    return AppConfig(
        root_dir=root,
        projects_dir=root / "projects",
        schemas_dir=PACKAGE_DIR / "schemas",
        env={"UI_PORT": "5000", "DEBUG": False},
        limits=EnumerationLimits(),
    )


class AnalysisTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.workbook = parse_workbook(WORKBOOK)
        self.graph = build_graph(self.workbook)
        self.swot = self.workbook.swot_by_id()

    def test_analysis_is_deterministic(self) -> None:
        first = analyze(self.graph.view(), self.swot)
        second = analyze(self.graph.view(), self.swot)
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_result_contents(self) -> None:
        result = analyze(self.graph.view(), self.swot)
        self.assertEqual(result.summary()["reinforcing"], 1)
        self.assertEqual(result.summary()["balancing"], 1)
        self.assertEqual(result.leverage_points[0].node_id, "demand")
        self.assertEqual(result.leverage_points[0].impact, "high")
        self.assertTrue(result.options)
        self.assertFalse(result.truncated)

    def test_empty_graph(self) -> None:
        result = analyze(CausalGraph().view())
        self.assertEqual(result.loops, [])
        self.assertEqual(result.leverage_points, [])
        self.assertEqual(result.options, [])

    def test_deleting_a_node_drops_dependent_results(self) -> None:
        self.graph.remove_node("wages")
        result = analyze(self.graph.view(), self.swot)
        self.assertEqual(len(result.loops), 1)
        for point in result.leverage_points:
            self.assertNotEqual(point.node_id, "wages")
        for option in result.options:
            self.assertNotIn("LP-wages", option.leverage_points)


class AnalyzerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        workbook = parse_workbook(WORKBOOK)
        self.graph = build_graph(workbook)
        self.swot = workbook.swot_by_id()
        self.analyzer = Analyzer()

    def test_unchanged_input_reuses_result(self) -> None:
        first = self.analyzer.run(self.graph, self.swot)
        self.assertIs(self.analyzer.run(self.graph, self.swot), first)

    def test_edit_triggers_recompute(self) -> None:
        first = self.analyzer.run(self.graph, self.swot)
        self.graph.toggle_polarity("l4")
        second = self.analyzer.run(self.graph, self.swot)
        self.assertIsNot(second, first)
        self.assertNotEqual(second.fingerprint, first.fingerprint)
        self.assertEqual(second.summary()["reinforcing"], 2)

    def test_swot_edit_triggers_recompute(self) -> None:
        first = self.analyzer.run(self.graph, self.swot)
        swot = dict(self.swot)
        swot["s3"] = swot["s3"].model_copy(update={"stakeholder": "Guilds"})
        self.assertNotEqual(self.analyzer.run(self.graph, swot).fingerprint, first.fingerprint)

    def test_moving_a_node_keeps_fingerprint(self) -> None:
        first = self.analyzer.run(self.graph, self.swot)
        moved = CausalGraph.from_parts(
            [n.model_copy(update={"x": n.x + 40, "y": 12.5}) for n in self.graph.nodes.values()],
            self.graph.links,
        )
        self.assertIs(self.analyzer.run(moved, self.swot), first)

    def test_invalidate(self) -> None:
        first = self.analyzer.run(self.graph, self.swot)
        self.analyzer.invalidate()
        self.assertIsNot(self.analyzer.run(self.graph, self.swot), first)


class RunPipelineTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.cfg = make_config(self.root)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_run_writes_artifacts_and_provenance(self) -> None:
        project_dir = self.cfg.projects_dir / "demo"
        project_dir.mkdir(parents=True)
        (project_dir / "workbook.yml").write_text(yaml.safe_dump(WORKBOOK), encoding="utf-8")

        artifacts = run_pipeline("demo", cfg=self.cfg)
        for key in ("loops", "leverage_points", "strategic_options", "analysis",
                    "loops_csv", "leverage_points_csv", "strategic_options_csv"):
            self.assertTrue(Path(artifacts[key]).exists(), f"missing artifact: {key}")

        loops = json.loads(Path(artifacts["loops"]).read_text(encoding="utf-8"))
        self.assertEqual(len(loops["reinforcing"]), 1)
        self.assertEqual(len(loops["balancing"]), 1)

        csv_header = Path(artifacts["loops_csv"]).read_text(encoding="utf-8").splitlines()[0]
        self.assertTrue(csv_header.startswith("loop_id,type,length"))

        events = read_events(for_project(self.cfg, "demo").provenance_db_path)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["event"], "analysis")
        self.assertEqual(events[0]["payload"]["loops"], 2)
        analysis = json.loads(Path(artifacts["analysis"]).read_text(encoding="utf-8"))
        self.assertEqual(events[0]["fingerprint"], analysis["fingerprint"])

    def test_missing_workbook(self) -> None:
        (self.cfg.projects_dir / "empty").mkdir(parents=True)
        with self.assertRaises(FileNotFoundError):
            run_pipeline("empty", cfg=self.cfg)


class ArchetypeExpansionTestCase(unittest.TestCase):
    def test_flagged_archetypes_are_instantiated(self) -> None:
        data = dict(WORKBOOK)
        data["archetypes"] = [
            {"id": "ltg", "type": "limits_to_growth", "instantiate": True},
            {"id": "ftf", "type": "fixes_that_fail"},
        ]
        graph = build_graph(parse_workbook(data))
        self.assertIn("ltg:action", graph.nodes)
        self.assertNotIn("ftf:fix", graph.nodes)
        result = analyze(graph.view(), [SwotEntry(id="s1", category="strength", text="x")])
        self.assertEqual(result.summary()["loops"], 4)

    def test_manual_graph_matches_workbook_graph(self) -> None:
        graph = CausalGraph()
        for node in parse_workbook(WORKBOOK).nodes:
            graph.add_node(CldNode(**node.model_dump()))
        for link in parse_workbook(WORKBOOK).links:
            graph.add_link(CausalLink(**link.model_dump()))
        swot = parse_workbook(WORKBOOK).swot
        self.assertEqual(
            analyze(graph.view(), swot).fingerprint,
            analyze(build_graph(parse_workbook(WORKBOOK)).view(), swot).fingerprint,
        )


if __name__ == "__main__":
    unittest.main()
