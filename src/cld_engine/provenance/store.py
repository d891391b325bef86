from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List


def _ensure_db(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path))
    try:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS provenance (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                ts TEXT NOT NULL,
                event TEXT NOT NULL,
                fingerprint TEXT,
                payload TEXT
            )
            """
        )
        conn.commit()
    finally:
        conn.close()


def log_event(
    db_path: Path,
    event: str,
    payload: Dict[str, Any] | None = None,
    fingerprint: str | None = None,
) -> None:
    """Append an analysis event, tagged with the input fingerprint it was computed from."""
    _ensure_db(db_path)
    conn = sqlite3.connect(str(db_path))
    try:
        cur = conn.cursor()
        cur.execute(
            "INSERT INTO provenance (ts, event, fingerprint, payload) VALUES (?, ?, ?, ?)",
            (
                datetime.now(timezone.utc).isoformat(),
                event,
                fingerprint,
                json.dumps(payload or {}),
            ),
        )
        conn.commit()
    finally:
        conn.close()


def read_events(db_path: Path) -> List[Dict[str, Any]]:
    if not db_path.exists():
        return []
    conn = sqlite3.connect(str(db_path))
    try:
        rows = conn.execute(
            "SELECT ts, event, fingerprint, payload FROM provenance ORDER BY id"
        ).fetchall()
    finally:
        conn.close()
    return [
        {"ts": ts, "event": event, "fingerprint": fp, "payload": json.loads(payload or "{}")}
        for ts, event, fp, payload in rows
    ]
