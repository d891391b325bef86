"""Generate CSV exports from analysis results."""
from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from ..knowledge.types import CldNode, FeedbackLoop, LeveragePoint, StrategicOption


def _write_rows(output_path: Path, fieldnames: List[str], rows: List[Dict]) -> int:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)
    return len(rows)


def generate_loops_csv(
    loops: Sequence[FeedbackLoop], nodes: Mapping[str, CldNode], output_path: Path
) -> int:
    """Generate loops CSV, one row per loop.

    Returns:
        Number of rows written
    """
    fieldnames = ["loop_id", "type", "length", "variables", "opposite_links", "has_delay", "description"]
    rows = []
    for loop in loops:
        rows.append(
            {
                "loop_id": loop.id,
                "type": loop.type,
                "length": len(loop.nodes),
                "variables": " → ".join(nodes[n].label if n in nodes else n for n in loop.nodes),
                "opposite_links": loop.opposite_links,
                "has_delay": loop.has_delay,
                "description": loop.description,
            }
        )
    return _write_rows(output_path, fieldnames, rows)


def generate_leverage_csv(
    points: Sequence[LeveragePoint], nodes: Mapping[str, CldNode], output_path: Path
) -> int:
    fieldnames = ["leverage_id", "variable", "type", "impact", "score", "heuristics", "loops", "description"]
    rows = [
        {
            "leverage_id": p.id,
            "variable": nodes[p.node_id].label if p.node_id in nodes else p.node_id,
            "type": p.type,
            "impact": p.impact,
            "score": p.score,
            "heuristics": "; ".join(p.heuristics),
            "loops": "; ".join(p.loop_ids),
            "description": p.description,
        }
        for p in points
    ]
    return _write_rows(output_path, fieldnames, rows)


def generate_options_csv(options: Sequence[StrategicOption], output_path: Path) -> int:
    fieldnames = [
        "option_id",
        "title",
        "feasibility",
        "leverage_points",
        "power_alignment",
        "institutional_capacity",
        "time_horizon",
        "stakeholder_coalition",
        "description",
    ]
    rows = [
        {
            "option_id": o.id,
            "title": o.title,
            "feasibility": o.feasibility,
            "leverage_points": "; ".join(o.leverage_points),
            "power_alignment": o.political_economy.power_alignment,
            "institutional_capacity": o.political_economy.institutional_capacity,
            "time_horizon": o.political_economy.time_horizon,
            "stakeholder_coalition": o.political_economy.stakeholder_coalition,
            "description": o.description,
        }
        for o in options
    ]
    return _write_rows(output_path, fieldnames, rows)
