from __future__ import annotations

import logging
from typing import List

from flask import Flask, jsonify, request, send_from_directory

from .config import AppConfig, load_config
from .knowledge.loader import WORKBOOK_SCHEMA, parse_workbook
from .orchestrator import analyze, build_graph, run_pipeline
from .paths import for_project

logger = logging.getLogger(__name__)


def create_app(cfg: AppConfig | None = None) -> Flask:
    cfg = cfg or load_config()
    app = Flask(__name__)

    @app.route("/")
    def index():
        return jsonify({"service": "cld-engine", "endpoints": ["/projects", "/analyze", "/run-pipeline/<project>"]})

    @app.route("/projects")
    def list_projects():
        projects: List[str] = []
        if cfg.projects_dir.exists():
            for p in sorted(cfg.projects_dir.iterdir()):
                if p.is_dir():
                    projects.append(p.name)
        return jsonify({"projects": projects})

    @app.route("/analyze", methods=["POST"])
    def analyze_route():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"status": "error", "error": "Request body must be a JSON object"}), 400
        try:
            workbook = parse_workbook(data, cfg.schemas_dir / WORKBOOK_SCHEMA)
            graph = build_graph(workbook)
        except ValueError as e:
            logger.warning(f"Rejected workbook: {e}")
            return jsonify({"status": "error", "error": str(e)}), 400
        result = analyze(graph.view(), workbook.swot_by_id(), cfg.limits)
        return jsonify({"status": "ok", "analysis": result.to_dict()})

    @app.route("/run-pipeline/<project>")
    def run_pipeline_route(project: str):
        try:
            result = run_pipeline(project=project, cfg=cfg)
            return jsonify({"status": "ok", "artifacts": result})
        except FileNotFoundError as e:
            return jsonify({"status": "error", "error": str(e)}), 404
        except ValueError as e:
            return jsonify({"status": "error", "error": str(e)}), 400

    @app.route("/artifacts/<project>")
    def artifacts_list(project: str):
        paths = for_project(cfg, project)
        if not paths.artifacts_dir.exists():
            return jsonify({"files": []})
        files = [p.name for p in sorted(paths.artifacts_dir.glob("*.json"))]
        return jsonify({"files": files})

    @app.route("/artifacts/<project>/<filename>")
    def get_artifact(project: str, filename: str):
        paths = for_project(cfg, project)
        return send_from_directory(paths.artifacts_dir, filename)

    return app


def run(host: str = "127.0.0.1", port: int = 5000, debug: bool = False) -> None:
    app = create_app()
    app.run(host=host, port=port, debug=debug)
