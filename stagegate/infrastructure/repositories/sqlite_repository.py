"""
SQLite Repository

Architectural Intent:
- Persistent storage backend using SQLite (stdlib, zero external deps)
- Stores rollout history with per-resource records, and autoscale decisions
- Feeds the `status` command and the dashboard
- Uses WAL mode for concurrent read/write support

Design Decisions:
- Single database file at configurable path (default: stagegate.db)
- Auto-creates tables on first use
- Thread-safe via sqlite3's check_same_thread=False
- Timestamps stored as ISO 8601 strings
- Saving a rollout twice replaces its resource rows (re-runs keep one history entry)
"""

from __future__ import annotations
import sqlite3
import json
import logging
from datetime import datetime, UTC
from typing import Optional

from stagegate.domain.entities.autoscale import ScaleDecision
from stagegate.domain.entities.rollout_state import ResourceRecord, RolloutState

logger = logging.getLogger(__name__)


class SQLiteRepository:
    """Persistent storage using SQLite."""

    def __init__(self, db_path: str = "stagegate.db"):
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    def connect(self) -> None:
        """Open database connection and create tables."""
        self._conn = sqlite3.connect(
            self._db_path,
            check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.row_factory = sqlite3.Row
        self._create_tables()
        logger.info("SQLite repository connected: %s", self._db_path)

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _create_tables(self) -> None:
        """Create tables if they don't exist."""
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS rollouts (
                rollout_id TEXT PRIMARY KEY,
                namespace TEXT NOT NULL,
                started_at TEXT NOT NULL,
                finished_at TEXT,
                succeeded INTEGER NOT NULL,
                cancelled INTEGER NOT NULL DEFAULT 0,
                aborted_reason TEXT,
                failed_stage INTEGER
            );

            CREATE TABLE IF NOT EXISTS rollout_resources (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                rollout_id TEXT NOT NULL REFERENCES rollouts(rollout_id) ON DELETE CASCADE,
                name TEXT NOT NULL,
                stage INTEGER NOT NULL,
                status TEXT NOT NULL,
                record TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS scale_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                workload TEXT NOT NULL,
                namespace TEXT NOT NULL,
                action TEXT NOT NULL,
                previous_replicas INTEGER NOT NULL,
                replicas INTEGER NOT NULL,
                desired_replicas INTEGER NOT NULL,
                driving_metric TEXT,
                reason TEXT DEFAULT '',
                decided_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_rollouts_started ON rollouts(started_at);
            CREATE INDEX IF NOT EXISTS idx_resources_rollout ON rollout_resources(rollout_id);
            CREATE INDEX IF NOT EXISTS idx_scale_workload ON scale_events(workload);
        """)

    # -- Rollouts ------------------------------------------------------------

    def save_rollout(self, state: RolloutState) -> None:
        """Insert or replace a rollout and its resource records."""
        assert self._conn is not None
        with self._conn:
            self._conn.execute(
                """INSERT OR REPLACE INTO rollouts
                   (rollout_id, namespace, started_at, finished_at, succeeded,
                    cancelled, aborted_reason, failed_stage)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    state.rollout_id,
                    state.namespace,
                    state.started_at.isoformat(),
                    state.finished_at.isoformat() if state.finished_at else None,
                    int(state.succeeded),
                    int(state.cancelled),
                    state.aborted_reason,
                    state.failed_stage,
                ),
            )
            self._conn.execute(
                "DELETE FROM rollout_resources WHERE rollout_id = ?", (state.rollout_id,)
            )
            self._conn.executemany(
                """INSERT INTO rollout_resources (rollout_id, name, stage, status, record)
                   VALUES (?, ?, ?, ?, ?)""",
                [
                    (state.rollout_id, r.name, r.stage, r.status.value, json.dumps(r.to_dict()))
                    for r in state.records.values()
                ],
            )
        logger.debug("Saved rollout %s", state.rollout_id, extra={"rollout_id": state.rollout_id})

    def _load(self, row: sqlite3.Row) -> RolloutState:
        assert self._conn is not None
        state = RolloutState(namespace=row["namespace"], rollout_id=row["rollout_id"])
        state.started_at = datetime.fromisoformat(row["started_at"])
        if row["finished_at"]:
            state.finished_at = datetime.fromisoformat(row["finished_at"])
        state.aborted_reason = row["aborted_reason"]
        state.failed_stage = row["failed_stage"]
        state.cancelled = bool(row["cancelled"])
        resources = self._conn.execute(
            "SELECT record FROM rollout_resources WHERE rollout_id = ? ORDER BY stage, id",
            (row["rollout_id"],),
        ).fetchall()
        for resource in resources:
            record = ResourceRecord.from_dict(json.loads(resource["record"]))
            state.records[record.name] = record
        return state

    def get_rollout(self, rollout_id: str) -> Optional[RolloutState]:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT * FROM rollouts WHERE rollout_id = ?", (rollout_id,)
        ).fetchone()
        return self._load(row) if row else None

    def latest_rollout(self, namespace: Optional[str] = None) -> Optional[RolloutState]:
        """Most recently started rollout, optionally within one namespace."""
        assert self._conn is not None
        if namespace:
            row = self._conn.execute(
                "SELECT * FROM rollouts WHERE namespace = ? ORDER BY started_at DESC LIMIT 1",
                (namespace,),
            ).fetchone()
        else:
            row = self._conn.execute(
                "SELECT * FROM rollouts ORDER BY started_at DESC LIMIT 1"
            ).fetchone()
        return self._load(row) if row else None

    def list_rollouts(self, limit: int = 20) -> list[dict]:
        assert self._conn is not None
        rows = self._conn.execute(
            "SELECT * FROM rollouts ORDER BY started_at DESC LIMIT ?", (limit,)
        ).fetchall()
        return [dict(r) for r in rows]

    # -- Autoscale -----------------------------------------------------------

    def record_scale(self, decision: ScaleDecision, namespace: str = "") -> int:
        """Record an autoscale decision. Returns the event ID."""
        assert self._conn is not None
        cursor = self._conn.execute(
            """INSERT INTO scale_events
               (workload, namespace, action, previous_replicas, replicas,
                desired_replicas, driving_metric, reason, decided_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                decision.workload,
                namespace,
                decision.action.value,
                decision.previous_replicas,
                decision.replicas,
                decision.desired_replicas,
                decision.driving_metric.value if decision.driving_metric else None,
                decision.reason,
                datetime.now(UTC).isoformat(),
            ),
        )
        self._conn.commit()
        return cursor.lastrowid

    def recent_scale_events(
        self, workload: Optional[str] = None, limit: int = 50
    ) -> list[dict]:
        """Most recent autoscale decisions, optionally for one workload."""
        assert self._conn is not None
        if workload:
            rows = self._conn.execute(
                "SELECT * FROM scale_events WHERE workload = ? ORDER BY id DESC LIMIT ?",
                (workload, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM scale_events ORDER BY id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [dict(r) for r in rows]
