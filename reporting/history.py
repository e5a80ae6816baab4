"""
Seven-day history summary.

Builds the check-in calendar shown next to the daily report:
- One entry per local calendar day, oldest first, today last
- Today's entry reflects the live session scores when any exist
  (stored records for today are superseded, not added)
- Day score = rounded mean of that day's scores
- Streak counts consecutive completed days backwards from today if today
  is done, otherwise from yesterday
- History average = rounded mean of completed day scores excluding today,
  so today can be compared against it
- Improving when today's mean exceeds the history average by more than 5
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from scoring.models import Domain, HistoryRecord

logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def record_date(record: HistoryRecord) -> date:
    """Local calendar date of a record's epoch-ms timestamp."""
    return datetime.fromtimestamp(record.timestamp / 1000.0).date()


@dataclass
class DayStatus:
    """
    One calendar cell.

    Attributes:
        day: Local date
        label: 'Today', 'Yesterday' or 'M.D'
        completed: At least one test that day
        score: Rounded mean score (0 when not completed)
        is_today: Whether this is the current day
    """
    day: date
    label: str
    completed: bool
    score: int = 0
    is_today: bool = False


@dataclass
class HistorySummary:
    """
    Calendar plus trend figures.

    Attributes:
        days: Seven DayStatus entries, oldest first
        streak: Consecutive completed days
        history_average: Mean of completed days before today, None if none
        today_average: Mean of today's live scores, None if none
        improving: Today beats the history average by the margin
    """
    days: List[DayStatus] = field(default_factory=list)
    streak: int = 0
    history_average: Optional[int] = None
    today_average: Optional[float] = None
    improving: bool = False


def summarize_history(
    records: Iterable[HistoryRecord],
    current_scores: Optional[Mapping[Domain, int]] = None,
    today: Optional[date] = None,
    config: Optional[Dict] = None
) -> HistorySummary:
    """
    Build the calendar, streak and trend from stored records.

    Args:
        records: History records (any age; older ones are ignored)
        current_scores: Live scores of the current session
        today: Reference date (defaults to the local date)
        config: Configuration dictionary (reporting section)

    Returns:
        HistorySummary
    """
    reporting_cfg = (config or {}).get('reporting', {})
    num_days = reporting_cfg.get('history_days', 7)
    margin = reporting_cfg.get('improvement_margin', 5)

    today = today or date.today()

    totals: Dict[date, List[int]] = {}
    for record in records:
        totals.setdefault(record_date(record), []).append(record.score)

    live = [score for score in (current_scores or {}).values() if score is not None]
    if live:
        totals[today] = list(live)

    days: List[DayStatus] = []
    past_scores: List[int] = []

    for offset in range(num_days - 1, -1, -1):
        day = today - timedelta(days=offset)
        if offset == 0:
            label = 'Today'
        elif offset == 1:
            label = 'Yesterday'
        else:
            label = f"{day.month}.{day.day}"

        scores = totals.get(day, [])
        completed = len(scores) > 0
        score = round_half_up(sum(scores) / len(scores)) if completed else 0
        days.append(DayStatus(day=day, label=label, completed=completed, score=score, is_today=offset == 0))

        if completed and offset != 0:
            past_scores.append(score)

    streak = 0
    start = len(days) - 1 if days[-1].completed else len(days) - 2
    for index in range(start, -1, -1):
        if not days[index].completed:
            break
        streak += 1

    history_average = round_half_up(sum(past_scores) / len(past_scores)) if past_scores else None
    today_average = sum(live) / len(live) if live else None
    improving = (
        history_average is not None
        and today_average is not None
        and today_average > history_average + margin
    )

    logger.debug(f"History summary: streak={streak}, history_avg={history_average}, improving={improving}")

    return HistorySummary(
        days=days,
        streak=streak,
        history_average=history_average,
        today_average=today_average,
        improving=improving
    )


def latest_scores_for_day(records: Iterable[HistoryRecord], day: Optional[date] = None) -> Dict[Domain, int]:
    """Most recent score per domain among the records of one local day."""
    day = day or date.today()
    latest: Dict[Domain, HistoryRecord] = {}
    for record in records:
        if record_date(record) != day:
            continue
        current = latest.get(record.type)
        if current is None or record.timestamp >= current.timestamp:
            latest[record.type] = record
    return {domain: record.score for domain, record in latest.items()}
