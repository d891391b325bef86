from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv

from .graph.loops import EnumerationLimits

PACKAGE_DIR = Path(__file__).resolve().parent


@dataclass
class AppConfig:
    """Top-level configuration for the application.

    - `root_dir`: Repository root (assumed to contain `projects` or `src`).
    - `projects_dir`: Folder containing per-project workbooks and artifacts.
    - `schemas_dir`: Folder with JSON Schemas used for workbook validation.
    - `env`: Dictionary of environment-derived toggles.
    - `limits`: Ceilings applied to loop detection.
    """

    root_dir: Path
    projects_dir: Path
    schemas_dir: Path
    env: dict
    limits: EnumerationLimits


def detect_repo_root() -> Path:
    """Detect repository root by walking upwards until `projects` or `src` exists.

    Falls back to current working directory.
    """
    cwd = Path.cwd().resolve()
    for p in [cwd] + list(cwd.parents):
        if (p / "projects").exists() or (p / "src").exists():
            return p
    return cwd


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_limits() -> EnumerationLimits:
    defaults = EnumerationLimits()
    return EnumerationLimits(
        max_nodes=_env_int("CLD_MAX_NODES", defaults.max_nodes),
        max_cycles=_env_int("CLD_MAX_CYCLES", defaults.max_cycles),
        max_steps=_env_int("CLD_MAX_STEPS", defaults.max_steps),
    )


def load_config() -> AppConfig:
    # Load .env file from repository root
    root = detect_repo_root()
    load_dotenv(root / ".env")

    projects_dir = Path(os.getenv("CLD_PROJECTS_DIR") or root / "projects")
    env = {
        "UI_PORT": os.getenv("CLD_UI_PORT", "5000"),
        "DEBUG": os.getenv("CLD_DEBUG", "0") in {"1", "true", "True"},
    }
    return AppConfig(
        root_dir=root,
        projects_dir=projects_dir,
        schemas_dir=PACKAGE_DIR / "schemas",
        env=env,
        limits=load_limits(),
    )
