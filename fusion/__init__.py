"""
Cross-domain fusion module.

This package combines the per-domain scores into one day-level status
using a weakest-link policy:
- A single domain below the danger threshold forces DANGER
- The average only distinguishes CAUTION from NORMAL
- Narrative classifications never override a computed DANGER

Clinical rationale:
- Acute neurological events usually affect one system first
- Averaging would dilute the one signal that matters
"""

from .risk_aggregator import (
    RiskAssessment,
    aggregate_results,
    aggregate_risk,
    reconcile_narrative,
    scores_from_results,
    status_to_narrative,
)

__all__ = [
    'RiskAssessment',
    'aggregate_results',
    'aggregate_risk',
    'reconcile_narrative',
    'scores_from_results',
    'status_to_narrative',
]
