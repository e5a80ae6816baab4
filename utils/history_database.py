"""
History Database Module for the screening engine.

Persistent storage collaborator: keeps one row per completed domain test
and a small key/value settings table for the calibration baseline and the
emergency contact. The engine itself never retains signal data; only the
derived score, findings text and optional snapshot are stored here.

Key features:
- SQLite database, created on first use
- History queries by age (last N days) or in full
- Baseline payloads merged per domain and timestamped on each save
- Bulk history import with identifiers reassigned
"""

import sqlite3
import json
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Any

from scoring.models import BaselineProfile, DomainBaseline, Domain, HistoryRecord

logger = logging.getLogger(__name__)

BASELINE_KEY = 'baseline'
CONTACT_KEY = 'contact'


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class HistoryDatabase:
    """
    SQLite store for screening history and user settings.

    Tables:
    - history: {id, type, score, details, timestamp, snapshot}
    - settings: {key, value} with JSON-encoded values
    """

    def __init__(self, db_path: str = "data/neuroscreen.db"):
        """
        Initialize history database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_database()

        logger.info(f"History database initialized: {self.db_path}")

    def _init_database(self):
        """Create database tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    type TEXT NOT NULL,
                    score INTEGER NOT NULL,
                    details TEXT,
                    timestamp INTEGER NOT NULL,
                    snapshot BLOB
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_history_timestamp
                ON history(timestamp)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            conn.commit()

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def save_record(self, record: HistoryRecord) -> int:
        """
        Persist one domain test result.

        Args:
            record: Completed test record (its id is ignored)

        Returns:
            Identifier assigned by the database
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO history (type, score, details, timestamp, snapshot)
                VALUES (?, ?, ?, ?, ?)
            """, (
                record.type.value,
                int(record.score),
                record.details,
                int(record.timestamp),
                record.snapshot
            ))
            conn.commit()
            record_id = cursor.lastrowid

        logger.info(f"Saved {record.type.value} record #{record_id} (score={record.score})")
        return record_id

    def get_history(self, days: int = 7, now: Optional[int] = None) -> List[HistoryRecord]:
        """
        Records from the last `days` days, oldest first.

        Args:
            days: Look-back window
            now: Reference time in epoch ms (defaults to wall clock)
        """
        now = now_ms() if now is None else now
        cutoff = now - days * 24 * 60 * 60 * 1000

        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM history WHERE timestamp >= ? ORDER BY timestamp, id",
                (cutoff,)
            )
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def get_all_history(self) -> List[HistoryRecord]:
        """Every stored record, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM history ORDER BY timestamp, id")
            return [self._row_to_record(row) for row in cursor.fetchall()]

    def import_history(self, records: List[HistoryRecord]) -> int:
        """
        Append records in a single transaction, discarding their ids.

        Returns:
            Number of records inserted
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.executemany("""
                INSERT INTO history (type, score, details, timestamp, snapshot)
                VALUES (?, ?, ?, ?, ?)
            """, [
                (r.type.value, int(r.score), r.details, int(r.timestamp), r.snapshot)
                for r in records
            ])
            conn.commit()

        logger.info(f"Imported {len(records)} history records")
        return len(records)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> HistoryRecord:
        return HistoryRecord(
            id=row['id'],
            type=Domain(row['type']),
            score=row['score'],
            details=row['details'] or '',
            timestamp=row['timestamp'],
            snapshot=row['snapshot']
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _get_setting(self, key: str) -> Optional[Any]:
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
            row = cursor.fetchone()
        return json.loads(row[0]) if row else None

    def _set_setting(self, key: str, value: Any):
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (key, json.dumps(value))
            )
            conn.commit()

    def _delete_setting(self, key: str):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM settings WHERE key = ?", (key,))
            conn.commit()

    def get_baseline(self) -> Optional[BaselineProfile]:
        """Last stored baseline, or None if the user never calibrated."""
        data = self._get_setting(BASELINE_KEY)
        if data is None:
            return None
        return BaselineProfile.from_dict(data)

    def get_baseline_dict(self) -> Optional[Dict[str, Any]]:
        """Stored baseline as the raw JSON mapping."""
        return self._get_setting(BASELINE_KEY)

    def save_baseline(self, baseline: DomainBaseline, timestamp: Optional[int] = None) -> BaselineProfile:
        """
        Merge one domain's calibration payload into the stored baseline.

        Other domains' payloads are kept; the profile timestamp is updated.

        Returns:
            The merged profile
        """
        data = self._get_setting(BASELINE_KEY) or {}
        data[baseline.domain.value.lower()] = baseline.to_dict()
        data['timestamp'] = now_ms() if timestamp is None else timestamp
        self._set_setting(BASELINE_KEY, data)

        logger.info(f"Saved {baseline.domain.value} baseline")
        return BaselineProfile.from_dict(data)

    def replace_baseline(self, data: Dict[str, Any]):
        """Overwrite the stored baseline with a validated mapping."""
        BaselineProfile.from_dict(data)
        self._set_setting(BASELINE_KEY, data)

    def clear_baseline(self):
        self._delete_setting(BASELINE_KEY)
        logger.info("Baseline cleared")

    def get_contact(self) -> Optional[Dict[str, Any]]:
        """Emergency contact mapping (e.g. {'name': ..., 'phone': ...})."""
        return self._get_setting(CONTACT_KEY)

    def save_contact(self, contact: Dict[str, Any]):
        self._set_setting(CONTACT_KEY, contact)
        logger.info("Emergency contact saved")

    def clear_all(self):
        """Delete every history record and setting."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM history")
            cursor.execute("DELETE FROM settings")
            conn.commit()

        logger.info("All history and settings cleared")
