"""
Reporting module.

- history: seven-day calendar, check-in streak and trend
- narrative: daily report text and status (Google Gemini API, with a
  deterministic demo mode and the weakest-link safety net)
"""

from .history import (
    DayStatus,
    HistorySummary,
    latest_scores_for_day,
    record_date,
    round_half_up,
    summarize_history,
)
from .narrative import DailyReport, DailyReportGenerator, GeminiNarrativeClient

__all__ = [
    'DayStatus',
    'HistorySummary',
    'latest_scores_for_day',
    'record_date',
    'round_half_up',
    'summarize_history',
    'DailyReport',
    'DailyReportGenerator',
    'GeminiNarrativeClient',
]
