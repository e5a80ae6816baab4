"""
Backup export and restore for the history store.

Backup document (JSON):
    {
        "version": 1,
        "timestamp": <epoch ms>,
        "baseline": {...} | null,
        "contact": {...} | null,
        "history": [{type, score, details, timestamp, snapshot}, ...]
    }

Restore is validated before anything is applied. Baseline/contact
restoration and history import are independent steps, so a restore can
partially succeed; the returned ImportResult says which part failed.
"""

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from scoring.models import BaselineProfile, HistoryRecord
from .errors import BackupFormatError
from .history_database import HistoryDatabase, now_ms

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


@dataclass
class ImportResult:
    """Outcome of a restore attempt."""
    success: bool
    message: str
    records_imported: int = 0


def build_backup(db: HistoryDatabase, timestamp: Optional[int] = None) -> Dict[str, Any]:
    """Assemble the backup document from the store."""
    return {
        'version': BACKUP_VERSION,
        'timestamp': now_ms() if timestamp is None else timestamp,
        'baseline': db.get_baseline_dict(),
        'contact': db.get_contact(),
        'history': [r.to_dict() for r in db.get_all_history()],
    }


def export_backup(db: HistoryDatabase, output_path) -> Path:
    """
    Write a backup file.

    Args:
        db: Source store
        output_path: Destination JSON file

    Returns:
        Path written
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    backup = build_backup(db)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(backup, f, indent=2)

    logger.info(f"Exported backup with {len(backup['history'])} records to {output_path}")
    return output_path


def parse_backup(text: str) -> Dict[str, Any]:
    """
    Parse and structurally validate a backup document.

    Raises:
        BackupFormatError: empty text, invalid JSON, non-object document
            or missing version
    """
    if not text or not text.strip():
        raise BackupFormatError("Backup file is empty", "File is empty")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise BackupFormatError(f"Backup is not valid JSON: {e}", "Invalid JSON format") from e

    if not isinstance(data, dict):
        raise BackupFormatError("Backup root must be an object", "Invalid backup file format")
    if 'version' not in data:
        raise BackupFormatError("Backup has no version field", "Invalid backup file format")

    return data


def _validate_history(rows: Any) -> List[HistoryRecord]:
    if not isinstance(rows, list):
        raise BackupFormatError("History must be a list", "History data is corrupted")
    try:
        return [HistoryRecord.from_dict(row) for row in rows]
    except ValueError as e:
        raise BackupFormatError(f"Invalid history row: {e}", "History data is corrupted") from e


def import_backup_text(db: HistoryDatabase, text: str) -> ImportResult:
    """
    Restore a backup document into the store.

    Steps:
    1. Parse; any structural problem applies nothing
    2. Restore baseline and contact
    3. Validate every history row, then import them all

    Returns:
        ImportResult describing full, partial or no success
    """
    try:
        data = parse_backup(text)
    except BackupFormatError as e:
        logger.error(f"Backup rejected: {e}")
        return ImportResult(success=False, message=e.user_message)

    try:
        if data.get('baseline'):
            db.replace_baseline(data['baseline'])
        if data.get('contact'):
            db.save_contact(data['contact'])
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        logger.error(f"Backup settings rejected: {e}")
        return ImportResult(success=False, message="Baseline or contact data is corrupted")

    history = data.get('history')
    if history is None:
        return ImportResult(success=True, message="Settings restored (no history in backup)")

    try:
        records = _validate_history(history)
    except BackupFormatError as e:
        logger.error(f"Backup history rejected: {e}")
        return ImportResult(
            success=False,
            message=f"Settings restored, but history import failed: {e.user_message}"
        )

    try:
        count = db.import_history(records)
    except (sqlite3.Error, OverflowError) as e:
        logger.error(f"Backup history could not be stored: {e}")
        return ImportResult(
            success=False,
            message="Settings restored, but history import failed: History data is corrupted"
        )

    return ImportResult(
        success=True,
        message=f"Restored settings and {count} history records",
        records_imported=count
    )


def import_backup(db: HistoryDatabase, input_path) -> ImportResult:
    """Restore from a backup file on disk."""
    input_path = Path(input_path)
    if not input_path.exists():
        raise FileNotFoundError(f"Backup file not found: {input_path}")

    logger.info(f"Importing backup from {input_path}")
    with open(input_path, 'r', encoding='utf-8') as f:
        text = f.read()

    return import_backup_text(db, text)
