"""SQLite-backed outcome history (the calibration history collaborator)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from edge_engine.calibration.adaptive import ActionStats, learning_stats
from edge_engine.common.types import ensure_utc
from edge_engine.config import get_settings
from edge_engine.markets.models import Action, Category
from edge_engine.signals.models import Outcome, OutcomeRecord

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS outcomes (
    signal_id TEXT PRIMARY KEY,
    category TEXT NOT NULL,
    action TEXT NOT NULL,
    edge REAL NOT NULL,
    confidence REAL NOT NULL,
    timestamp TEXT NOT NULL,
    outcome TEXT,  -- NULL until resolved, 'YES' or 'NO'
    resolved_at TEXT
);
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_outcomes_learning
ON outcomes(category, action, outcome, timestamp DESC);
"""

_SELECT_COLUMNS = "signal_id, category, action, edge, confidence, timestamp, outcome"


def _row_to_record(row: aiosqlite.Row) -> OutcomeRecord:
    return OutcomeRecord(
        signal_id=row["signal_id"],
        category=Category.parse(row["category"]),
        action=Action.parse(row["action"]),
        edge=row["edge"],
        confidence=row["confidence"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        outcome=Outcome(row["outcome"]) if row["outcome"] else None,
    )


def _iso(dt: datetime) -> str:
    return ensure_utc(dt).astimezone(timezone.utc).isoformat()


class OutcomeTracker:
    """Outcome history stored in SQLite via aiosqlite."""

    def __init__(self, db_path: Path | None = None, max_records: int | None = None) -> None:
        settings = get_settings()
        self._db_path = db_path if db_path is not None else settings.db_path
        self._max_records = max_records or settings.calibration_max_records

    async def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE)
            await db.execute(_CREATE_INDEX)
            await db.commit()

    async def log_signal(self, record: OutcomeRecord) -> bool:
        """Log an emitted signal. Returns False if the id already exists."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                """INSERT OR IGNORE INTO outcomes
                   (signal_id, category, action, edge, confidence, timestamp, outcome)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.signal_id,
                    record.category.value,
                    record.action.value,
                    record.edge,
                    record.confidence,
                    _iso(record.timestamp),
                    record.outcome.value if record.outcome else None,
                ),
            )
            await db.commit()
            return cursor.rowcount == 1

    async def record_outcome(
        self,
        signal_id: str,
        outcome: Outcome,
        category: Category,
        action: Action,
        edge: float,
        confidence: float,
    ) -> bool:
        """Resolve a signal exactly once.

        Repeating the call with the same outcome succeeds without changing
        anything. A conflicting outcome for an already-resolved signal is
        refused. Unknown ids are inserted already resolved.

        Returns:
            True on success, False if refused or the database failed.
        """
        now = _iso(datetime.now(timezone.utc))
        try:
            await self._ensure_db()
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(
                    """UPDATE outcomes
                       SET outcome = ?, resolved_at = ?, category = ?, action = ?,
                           edge = ?, confidence = ?
                       WHERE signal_id = ? AND outcome IS NULL""",
                    (outcome.value, now, category.value, action.value, edge, confidence, signal_id),
                )
                if cursor.rowcount == 1:
                    await db.commit()
                    logger.info("Recorded outcome for signal %s: %s", signal_id, outcome.value)
                    return True

                cursor = await db.execute(
                    "SELECT outcome FROM outcomes WHERE signal_id = ?", (signal_id,),
                )
                row = await cursor.fetchone()
                if row is None:
                    await db.execute(
                        """INSERT INTO outcomes
                           (signal_id, category, action, edge, confidence, timestamp,
                            outcome, resolved_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                        (signal_id, category.value, action.value, edge, confidence, now,
                         outcome.value, now),
                    )
                    await db.commit()
                    logger.info("Recorded outcome for new signal %s: %s", signal_id, outcome.value)
                    return True

                if row[0] == outcome.value:
                    logger.debug("Signal %s already resolved as %s", signal_id, outcome.value)
                    return True

                logger.warning(
                    "Refusing to re-resolve signal %s: stored %s, got %s",
                    signal_id, row[0], outcome.value,
                )
                return False
        except aiosqlite.Error as exc:
            logger.error("Failed to record outcome for %s: %s", signal_id, exc)
            return False

    async def fetch_outcomes(
        self, category: Category, action: Action, since: datetime,
    ) -> list[OutcomeRecord]:
        """Resolved records for category+action emitted after *since*, newest first."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"""SELECT {_SELECT_COLUMNS} FROM outcomes
                    WHERE category = ? AND action = ?
                    AND outcome IS NOT NULL
                    AND timestamp > ?
                    ORDER BY timestamp DESC
                    LIMIT ?""",
                (category.value, action.value, _iso(since), self._max_records),
            )
            rows = await cursor.fetchall()
            return [_row_to_record(row) for row in rows]

    async def get_category_records(
        self, category: Category, since: datetime | None = None,
    ) -> list[OutcomeRecord]:
        """All resolved records for a category, optionally after *since*."""
        await self._ensure_db()
        query = f"SELECT {_SELECT_COLUMNS} FROM outcomes WHERE category = ? AND outcome IS NOT NULL"
        params: list[object] = [category.value]
        if since is not None:
            query += " AND timestamp > ?"
            params.append(_iso(since))
        query += " ORDER BY timestamp DESC"

        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            rows = await cursor.fetchall()
            return [_row_to_record(row) for row in rows]

    async def get_learning_stats(
        self, category: Category, since: datetime | None = None,
    ) -> list[ActionStats]:
        """Per-action accuracy for a category."""
        return learning_stats(await self.get_category_records(category, since))

    async def get_categories(self) -> list[Category]:
        """Distinct categories that have at least one logged signal."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT DISTINCT category FROM outcomes ORDER BY category")
            rows = await cursor.fetchall()
            return [Category.parse(row[0]) for row in rows]

    async def get_unresolved_ids(self) -> list[str]:
        """Signal ids still waiting for an outcome."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT signal_id FROM outcomes WHERE outcome IS NULL ORDER BY timestamp"
            )
            rows = await cursor.fetchall()
            return [row[0] for row in rows]


class InMemoryOutcomeHistory:
    """Dict-backed history with the same resolve-once semantics."""

    def __init__(self, records: list[OutcomeRecord] | None = None) -> None:
        self._records: dict[str, OutcomeRecord] = {r.signal_id: r for r in records or []}

    async def fetch_outcomes(
        self, category: Category, action: Action, since: datetime,
    ) -> list[OutcomeRecord]:
        since = ensure_utc(since)
        matching = [
            r for r in self._records.values()
            if r.category is category
            and r.action is action
            and r.outcome is not None
            and ensure_utc(r.timestamp) > since
        ]
        return sorted(matching, key=lambda r: r.timestamp, reverse=True)

    async def record_outcome(
        self,
        signal_id: str,
        outcome: Outcome,
        category: Category,
        action: Action,
        edge: float,
        confidence: float,
    ) -> bool:
        existing = self._records.get(signal_id)
        if existing is not None and existing.outcome is not None:
            return existing.outcome is outcome
        timestamp = existing.timestamp if existing else datetime.now(timezone.utc)
        self._records[signal_id] = OutcomeRecord(
            signal_id=signal_id,
            category=category,
            action=action,
            edge=edge,
            confidence=confidence,
            timestamp=timestamp,
            outcome=outcome,
        )
        return True
