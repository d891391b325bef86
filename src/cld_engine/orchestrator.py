from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .config import AppConfig, load_config
from .graph.builder import CausalGraph, GraphView
from .graph.loops import EnumerationLimits
from .knowledge.archetypes import instantiate_archetype
from .knowledge.loader import Workbook, load_workbook
from .knowledge.types import FeedbackLoop, LeveragePoint, StrategicOption, SwotEntry
from .paths import for_project, workbook_file
from .pipeline.csv_export import generate_leverage_csv, generate_loops_csv, generate_options_csv
from .pipeline.leverage import identify_leverage_points
from .pipeline.loops import detect_loops, loops_payload
from .pipeline.options import synthesize_options
from .provenance.store import log_event

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    """Everything derived from one graph snapshot. Never patched, only replaced."""

    fingerprint: str
    loops: List[FeedbackLoop] = field(default_factory=list)
    leverage_points: List[LeveragePoint] = field(default_factory=list)
    options: List[StrategicOption] = field(default_factory=list)
    truncated: bool = False
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "fingerprint": self.fingerprint,
            "loops": [l.model_dump() for l in self.loops],
            "leverage_points": [p.model_dump() for p in self.leverage_points],
            "strategic_options": [o.model_dump() for o in self.options],
            "truncated": self.truncated,
            "notes": list(self.notes),
        }

    def summary(self) -> Dict:
        return {
            "loops": len(self.loops),
            "reinforcing": sum(1 for l in self.loops if l.type == "reinforcing"),
            "balancing": sum(1 for l in self.loops if l.type == "balancing"),
            "leverage_points": len(self.leverage_points),
            "options": len(self.options),
            "truncated": self.truncated,
        }


def _swot_map(swot: Mapping[str, SwotEntry] | Sequence[SwotEntry]) -> Dict[str, SwotEntry]:
    if isinstance(swot, Mapping):
        return dict(swot)
    return {e.id: e for e in swot}


def fingerprint(view: GraphView, swot: Mapping[str, SwotEntry] | Sequence[SwotEntry]) -> str:
    """Content hash of everything the analysis reads. Canvas positions are ignored."""
    doc = {
        "nodes": sorted(
            (n.model_dump(exclude={"x", "y"}) for n in view.nodes.values()),
            key=lambda n: n["id"],
        ),
        "links": [l.model_dump() for l in view.links],
        "swot": sorted(
            (e.model_dump() for e in _swot_map(swot).values()), key=lambda e: e["id"]
        ),
    }
    raw = json.dumps(doc, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def analyze(
    view: GraphView,
    swot: Mapping[str, SwotEntry] | Sequence[SwotEntry] = (),
    limits: Optional[EnumerationLimits] = None,
) -> AnalysisResult:
    """Run loop detection, leverage ranking and option synthesis on one snapshot."""
    swot_by_id = _swot_map(swot)
    loops, enumeration = detect_loops(view, limits)
    points = identify_leverage_points(view, loops)
    options = synthesize_options(view, loops, points, swot_by_id)
    logger.debug(
        f"Analysis: {len(loops)} loops, {len(points)} leverage points, {len(options)} options"
    )
    return AnalysisResult(
        fingerprint=fingerprint(view, swot_by_id),
        loops=loops,
        leverage_points=points,
        options=options,
        truncated=enumeration.truncated,
        notes=list(enumeration.notes),
    )


class Analyzer:
    """Memoizes the latest analysis on the input fingerprint.

    Any change to nodes, links or SWOT metadata produces a new fingerprint and
    a full recomputation; the previous result is discarded.
    """

    def __init__(self, limits: Optional[EnumerationLimits] = None) -> None:
        self.limits = limits
        self._result: Optional[AnalysisResult] = None

    def run(
        self,
        graph: CausalGraph | GraphView,
        swot: Mapping[str, SwotEntry] | Sequence[SwotEntry] = (),
    ) -> AnalysisResult:
        view = graph.view() if isinstance(graph, CausalGraph) else graph
        key = fingerprint(view, swot)
        if self._result is not None and self._result.fingerprint == key:
            return self._result
        self._result = analyze(view, swot, self.limits)
        return self._result

    def invalidate(self) -> None:
        self._result = None


def build_graph(workbook: Workbook) -> CausalGraph:
    """Build the diagram from a workbook, expanding archetypes flagged `instantiate`."""
    graph = CausalGraph.from_workbook(workbook)
    for archetype in workbook.archetypes:
        if archetype.instantiate:
            nodes, links = instantiate_archetype(graph, archetype)
            logger.info(
                f"Applied {archetype.name} archetype '{archetype.id}' "
                f"({len(nodes)} variables, {len(links)} links)"
            )
    return graph


def write_artifacts(result: AnalysisResult, view: GraphView, out_dir: Path) -> Dict[str, str]:
    """Write JSON artifacts and CSV exports for an analysis. Returns name -> path."""
    exports_dir = out_dir / "exports"
    out_dir.mkdir(parents=True, exist_ok=True)
    exports_dir.mkdir(parents=True, exist_ok=True)

    loops_path = out_dir / "loops.json"
    leverage_path = out_dir / "leverage_points.json"
    options_path = out_dir / "strategic_options.json"
    analysis_path = out_dir / "analysis.json"

    loops_path.write_text(
        json.dumps(loops_payload(result.loops, result.truncated, result.notes), indent=2),
        encoding="utf-8",
    )
    leverage_path.write_text(
        json.dumps({"leverage_points": [p.model_dump() for p in result.leverage_points]}, indent=2),
        encoding="utf-8",
    )
    options_path.write_text(
        json.dumps({"strategic_options": [o.model_dump() for o in result.options]}, indent=2),
        encoding="utf-8",
    )
    analysis_path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")

    loops_csv = exports_dir / "loops_export.csv"
    leverage_csv = exports_dir / "leverage_points_export.csv"
    options_csv = exports_dir / "strategic_options_export.csv"
    generate_loops_csv(result.loops, view.nodes, loops_csv)
    generate_leverage_csv(result.leverage_points, view.nodes, leverage_csv)
    generate_options_csv(result.options, options_csv)

    return {
        "loops": str(loops_path),
        "leverage_points": str(leverage_path),
        "strategic_options": str(options_path),
        "analysis": str(analysis_path),
        "loops_csv": str(loops_csv),
        "leverage_points_csv": str(leverage_csv),
        "strategic_options_csv": str(options_csv),
    }


def analyze_file(
    workbook_path: Path,
    out_dir: Path,
    cfg: Optional[AppConfig] = None,
) -> Dict[str, str]:
    """Analyze a standalone workbook file and write artifacts into `out_dir`."""
    cfg = cfg or load_config()
    workbook = load_workbook(workbook_path, cfg.schemas_dir)
    graph = build_graph(workbook)
    view = graph.view()
    result = analyze(view, workbook.swot_by_id(), cfg.limits)
    return write_artifacts(result, view, out_dir)


def run_pipeline(project: str, cfg: Optional[AppConfig] = None) -> Dict[str, str]:
    """Run the full analysis pipeline for a project.

    Args:
        project: Project name under the projects directory
        cfg: Optional pre-loaded configuration

    Returns:
        Mapping of artifact name to written path
    """
    logger.info(f"Starting pipeline for project: {project}")
    cfg = cfg or load_config()
    paths = for_project(cfg, project)

    wb_path = workbook_file(paths)
    if wb_path is None:
        raise FileNotFoundError(f"No workbook file found in {paths.base_dir}")
    logger.info(f"Found workbook: {wb_path.name}")
    paths.ensure()

    workbook = load_workbook(wb_path, cfg.schemas_dir)
    graph = build_graph(workbook)
    view = graph.view()
    logger.info(f"✓ Loaded {len(view.nodes)} variables and {len(view.links)} links")

    logger.info("Computing feedback loops, leverage points and strategic options...")
    result = analyze(view, workbook.swot_by_id(), cfg.limits)
    summary = result.summary()
    logger.info(
        f"✓ Found {summary['loops']} feedback loops "
        f"({summary['reinforcing']} reinforcing, {summary['balancing']} balancing)"
    )
    logger.info(f"✓ Ranked {summary['leverage_points']} leverage points")
    logger.info(f"✓ Synthesized {summary['options']} strategic options")
    for note in result.notes:
        logger.warning(note)

    artifacts = write_artifacts(result, view, paths.artifacts_dir)
    log_event(paths.provenance_db_path, "analysis", summary, fingerprint=result.fingerprint)
    return artifacts
