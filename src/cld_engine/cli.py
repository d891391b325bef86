from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List

from .config import load_config
from .knowledge.archetypes import ARCHETYPE_TYPES
from .knowledge.loader import load_workbook
from .orchestrator import analyze_file, build_graph, run_pipeline
from .paths import for_project, workbook_file


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with a clean format for terminal output."""
    level = logging.DEBUG if verbose else logging.INFO

    # Create formatter with timestamp and level
    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    # Logs go to stderr so stdout stays machine-readable JSON
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []  # Clear any existing handlers
    root_logger.addHandler(handler)


def cmd_run(args: argparse.Namespace) -> int:
    setup_logging(args.verbose)
    result = run_pipeline(project=args.project)
    print(json.dumps(result, indent=2))
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)
    workbook_path = Path(args.workbook)
    out_dir = Path(args.out) if args.out else workbook_path.parent / "artifacts"
    logger.info(f"Analyzing {workbook_path} -> {out_dir}")
    result = analyze_file(workbook_path, out_dir)
    print(json.dumps(result, indent=2))
    return 0


def cmd_archetypes_list(args: argparse.Namespace) -> int:
    for key, cls in ARCHETYPE_TYPES.items():
        print(f"{key:28s} {cls.name}")
    return 0


def cmd_archetypes_show(args: argparse.Namespace) -> int:
    cls = ARCHETYPE_TYPES.get(args.type)
    if cls is None:
        print(f"Unknown archetype: {args.type}", file=sys.stderr)
        return 2
    archetype = cls(id=args.type)
    nodes, links = archetype.template()
    print(
        json.dumps(
            {
                "type": args.type,
                "name": cls.name,
                "description": cls.description,
                "variables": archetype.variables(),
                "nodes": [n.model_dump() for n in nodes],
                "links": [l.model_dump() for l in links],
            },
            indent=2,
        )
    )
    return 0


def cmd_knowledge_validate(args: argparse.Namespace) -> int:
    cfg = load_config()
    paths = for_project(cfg, args.project)
    errs: List[str] = []

    wb_path = workbook_file(paths)
    if wb_path is None:
        errs.append(f"No workbook found in {paths.base_dir}")
    else:
        try:
            workbook = load_workbook(wb_path, cfg.schemas_dir)
            build_graph(workbook)
        except (ValueError, FileNotFoundError) as e:
            errs.append(f"Workbook error: {e}")

    if errs:
        print("Knowledge validation failed:")
        for e in errs:
            print(" -", e)
        return 1
    print("Knowledge validation OK.")
    return 0


def cmd_ui(args: argparse.Namespace) -> int:
    from .server import run as run_server

    cfg = load_config()
    run_server(port=args.port or int(cfg.env["UI_PORT"]), debug=cfg.env["DEBUG"])
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cld", description="Causal loop diagram analysis CLI")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    # cld run
    p_run = sub.add_parser("run", help="Analyze a project's workbook and write artifacts")
    p_run.add_argument("--project", required=True, help="Project name under projects/")
    p_run.set_defaults(func=cmd_run)

    # cld analyze
    p_an = sub.add_parser("analyze", help="Analyze a standalone workbook file")
    p_an.add_argument("workbook", help="Path to a .yml/.yaml/.json workbook")
    p_an.add_argument("--out", help="Output directory (default: <workbook dir>/artifacts)")
    p_an.set_defaults(func=cmd_analyze)

    # cld archetypes list|show
    p_arch = sub.add_parser("archetypes", help="System archetype templates")
    sub_arch = p_arch.add_subparsers(dest="acmd", required=True)
    p_arch_list = sub_arch.add_parser("list", help="List available archetypes")
    p_arch_list.set_defaults(func=cmd_archetypes_list)
    p_arch_show = sub_arch.add_parser("show", help="Show an archetype's template")
    p_arch_show.add_argument("type", help="Archetype type, e.g. fixes_that_fail")
    p_arch_show.set_defaults(func=cmd_archetypes_show)

    # cld knowledge validate
    p_kv = sub.add_parser("knowledge", help="Workbook operations")
    sub_kv = p_kv.add_subparsers(dest="kcmd", required=True)
    p_kv_val = sub_kv.add_parser("validate", help="Validate a project's workbook")
    p_kv_val.add_argument("--project", required=True)
    p_kv_val.set_defaults(func=cmd_knowledge_validate)

    # cld ui
    p_ui = sub.add_parser("ui", help="Launch the Flask JSON API")
    p_ui.add_argument("--port", type=int, default=None)
    p_ui.set_defaults(func=cmd_ui)

    return p


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
