from __future__ import annotations
import json
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional


DB_PATH: Optional[Path] = None


def init_db(db_path: Path) -> None:
    global DB_PATH
    DB_PATH = db_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(str(db_path)) as conn:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS imports (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                product_id TEXT NOT NULL,
                configurable_sku TEXT NOT NULL,
                status TEXT NOT NULL,
                message TEXT,
                imported TEXT,
                failed_sku TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.commit()


def add_import(rec: Dict) -> None:
    assert DB_PATH is not None
    with sqlite3.connect(str(DB_PATH)) as conn:
        cur = conn.cursor()
        cur.execute(
            "INSERT OR REPLACE INTO imports(id,session_id,product_id,configurable_sku,status,message,imported,failed_sku,created_at) VALUES(?,?,?,?,?,?,?,?,?)",
            (
                rec["id"], rec["session_id"], rec.get("product_id") or "", rec.get("configurable_sku") or "",
                rec["status"], rec.get("message"), json.dumps(rec.get("imported") or []),
                rec.get("failed_sku"), str(rec["created_at"]),
            )
        )
        conn.commit()


def _row(r: sqlite3.Row) -> Dict:
    d = dict(r)
    try:
        d["imported"] = json.loads(d.get("imported") or "[]")
    except ValueError:
        d["imported"] = []
    return d


def get_import(import_id: str) -> Optional[Dict]:
    assert DB_PATH is not None
    with sqlite3.connect(str(DB_PATH)) as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.cursor()
        cur.execute("SELECT * FROM imports WHERE id=?", (import_id,))
        r = cur.fetchone()
        return _row(r) if r else None


def list_imports(limit: int = 100) -> List[Dict]:
    assert DB_PATH is not None
    with sqlite3.connect(str(DB_PATH)) as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.cursor()
        cur.execute("SELECT * FROM imports ORDER BY created_at DESC LIMIT ?", (int(limit),))
        return [_row(r) for r in cur.fetchall()]
