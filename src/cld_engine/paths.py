from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import AppConfig

WORKBOOK_NAMES = ("workbook.yml", "workbook.yaml", "workbook.json")


@dataclass
class ProjectPaths:
    """Resolved paths for a given project: its workbook and derived artifacts."""

    project: str
    base_dir: Path
    artifacts_dir: Path
    exports_dir: Path
    db_dir: Path
    provenance_db_path: Path

    def ensure(self) -> None:
        """Ensure required directories exist."""
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        self.exports_dir.mkdir(parents=True, exist_ok=True)
        self.db_dir.mkdir(parents=True, exist_ok=True)


def for_project(cfg: AppConfig, project: str) -> ProjectPaths:
    base = cfg.projects_dir / project
    artifacts_dir = base / "artifacts"
    db_dir = base / "db"
    return ProjectPaths(
        project=project,
        base_dir=base,
        artifacts_dir=artifacts_dir,
        exports_dir=artifacts_dir / "exports",
        db_dir=db_dir,
        provenance_db_path=db_dir / "provenance.sqlite",
    )


def workbook_file(paths: ProjectPaths) -> Optional[Path]:
    """Return the project's workbook file, if any."""
    for name in WORKBOOK_NAMES:
        candidate = paths.base_dir / name
        if candidate.exists():
            return candidate
    return None
