"""
Daily narrative report using Google Gemini API.

Turns the day's domain scores into a short, warm status message and a
weather-style status (SUNNY / CLOUDY / STORM).

Engineering decisions:
- The prompt carries the per-domain scores, average, lowest score, the
  7-day history average and whether a baseline exists
- The model is asked for JSON {status, message}
- Without an API key a deterministic demo report mirrors the weakest-link
  rule; any service failure yields CLOUDY + "service unavailable"
- The computed DANGER classification is authoritative: it forces STORM
  over whatever the model (or the fallback) returned
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import google.generativeai as genai

from audio_pipeline.coherence import parse_json_response
from fusion.risk_aggregator import RiskAssessment, aggregate_risk, reconcile_narrative
from scoring.models import BaselineProfile, Domain, NarrativeStatus
from utils.errors import ServiceUnavailableError
from .history import round_half_up

logger = logging.getLogger(__name__)

DOMAIN_LABELS = {
    Domain.VISUAL: "Facial symmetry",
    Domain.AUDIO: "Voice stability",
    Domain.TOUCH: "Motor control",
}

EMPTY_MESSAGE = "Tap a module below to start today's health check."
FALLBACK_MESSAGE = "The analysis service is unavailable right now, please try again later."


@dataclass
class DailyReport:
    """
    Narrative result.

    Attributes:
        status: SUNNY, CLOUDY or STORM (after the safety-net override)
        message: Short advice text
        source: 'model', 'demo', 'fallback' or 'empty'
    """
    status: NarrativeStatus
    message: str
    source: str = 'model'


class GeminiNarrativeClient:
    """
    Gemini-backed report writer.

    Usage:
        client = GeminiNarrativeClient()
        data = client.generate(prompt)   # {'status': ..., 'message': ...}
    """

    def __init__(self, api_key: str = None, model_name: str = 'gemini-2.5-flash'):
        """Initialize Gemini narrative client."""
        self.api_key = api_key or os.getenv('GEMINI_API_KEY')

        if not self.api_key:
            raise ValueError("Gemini API key required. Set GEMINI_API_KEY environment variable.")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(model_name)

        logger.info(f"Gemini narrative client initialized ({model_name})")

    def generate(self, prompt: str) -> Dict[str, Any]:
        """
        Raises:
            ServiceUnavailableError: request failed or reply unusable
        """
        try:
            response = self.model.generate_content(
                prompt,
                generation_config={'response_mime_type': 'application/json'}
            )
            text = response.text
        except Exception as e:
            raise ServiceUnavailableError(f"Gemini narrative request failed: {e}") from e

        return parse_json_response(text)


class DailyReportGenerator:
    """
    Daily report with demo, fallback and safety-net policy.

    A client is any object with generate(prompt) -> dict. Without one the
    generator runs in demo mode, unless service_error records why the
    configured client could not be created; then every report is the
    fallback.
    """

    def __init__(self, config: Optional[Dict] = None, client=None, service_error: Optional[str] = None):
        self.config = config or {}
        self.client = client
        self.service_error = service_error
        self.improvement_margin = self.config.get('reporting', {}).get('improvement_margin', 5)

        if self.demo_mode:
            logger.warning("No narrative client configured; running in demo mode")

    @classmethod
    def from_environment(cls, config: Optional[Dict] = None) -> 'DailyReportGenerator':
        """
        Use Gemini when GEMINI_API_KEY is set, demo mode otherwise.

        A client that fails to initialize leaves the instance in fallback mode.
        """
        if not os.getenv('GEMINI_API_KEY'):
            return cls(config)
        model_name = (config or {}).get('reporting', {}).get('model_name', 'gemini-2.5-flash')
        try:
            client = GeminiNarrativeClient(model_name=model_name)
        except Exception as e:
            logger.error(f"Gemini narrative client initialization failed: {e}")
            return cls(config, service_error=str(e))
        return cls(config, client=client)

    @property
    def demo_mode(self) -> bool:
        return self.client is None and self.service_error is None

    def _improvement_context(self, average: int, baseline_present: bool, history_average: Optional[int]) -> str:
        if not baseline_present:
            return ""
        if average >= 90:
            return "Today's performance is excellent, at or above the ideal baseline."
        if history_average and average > history_average + self.improvement_margin:
            return f"Clear improvement over the 7-day average ({history_average})."
        return ""

    def build_prompt(
        self,
        assessment: RiskAssessment,
        baseline_present: bool,
        history_average: Optional[int] = None
    ) -> str:
        """Prompt text for the narrative model."""
        average = round_half_up(assessment.average_score)

        lines = []
        for domain, label in DOMAIN_LABELS.items():
            score = assessment.scores.get(domain)
            value = f"{score}" if score is not None else "not tested"
            if domain == Domain.TOUCH:
                value += " (below 60 may indicate tremor or loss of control)"
            lines.append(f"- {label}: {value}")

        baseline_context = (
            "The user has a personal baseline." if baseline_present
            else "The user has not set up a baseline yet."
        )
        improvement = self._improvement_context(average, baseline_present, history_average)
        history_text = history_average if history_average else "no data"

        return f"""
You are BrainGuard, a health assistant for elderly users.
Write a short daily report from the data below.

Today's scores:
{chr(10).join(lines)}
- Average: {average}
- Lowest: {assessment.lowest_score}

History:
- 7-day average: {history_text}
- {baseline_context} {improvement}

Tasks:
1. Choose the status:
   - If ANY single score is below 60 you MUST return 'STORM'.
   - Otherwise, if the average is 60-79 return 'CLOUDY'.
   - Otherwise return 'SUNNY'.
2. Write at most two sentences of advice in a warm, caring tone.
   If the lowest score is below 60, ignore the average and warn about
   that specific problem directly. If everything is fine, give praise.

Respond in this EXACT JSON format:
{{
  "status": "SUNNY" | "CLOUDY" | "STORM",
  "message": "advice text"
}}
"""

    def _demo_report(self, assessment: RiskAssessment, improvement: str) -> DailyReport:
        average = round_half_up(assessment.average_score)

        if assessment.critical:
            status = NarrativeStatus.STORM
            text = "One of the scores is clearly abnormal. Watch for changes and contact a doctor if needed."
        elif average < self.config.get('risk', {}).get('caution_threshold', 80):
            status = NarrativeStatus.CLOUDY
            text = "Today is a fair day, please get some rest."
        elif average > 90:
            status = NarrativeStatus.SUNNY
            text = "Excellent! You are in great shape, keep it up!"
        else:
            status = NarrativeStatus.SUNNY
            text = "Your indicators look stable."

        if improvement and not assessment.critical:
            text += " The recent trend is improving."

        return DailyReport(status=status, message=f"(Demo mode) {text}", source='demo')

    def generate(
        self,
        scores: Mapping[Domain, int],
        baseline: Optional[BaselineProfile] = None,
        history_average: Optional[int] = None
    ) -> DailyReport:
        """
        Produce the daily report. Never raises on service failure.

        Args:
            scores: Domain -> score for today's completed domains
            baseline: Stored baseline profile, if any
            history_average: 7-day history average excluding today

        Returns:
            DailyReport with the DANGER override applied
        """
        assessment = aggregate_risk(scores, self.config)

        if not assessment.has_results:
            return DailyReport(status=NarrativeStatus.SUNNY, message=EMPTY_MESSAGE, source='empty')

        baseline_present = baseline is not None and baseline.has_any()

        if self.demo_mode:
            improvement = self._improvement_context(
                round_half_up(assessment.average_score), baseline_present, history_average
            )
            return self._demo_report(assessment, improvement)

        try:
            if self.client is None:
                raise ServiceUnavailableError(f"Narrative client unavailable: {self.service_error}")
            data = self.client.generate(self.build_prompt(assessment, baseline_present, history_average))
            status_text = str(data.get('status', '')).upper()
            status = NarrativeStatus(status_text) if status_text in NarrativeStatus.__members__ else NarrativeStatus.SUNNY
            message = str(data.get('message') or '')
            if not message:
                raise ServiceUnavailableError("Model returned an empty message")
            report = DailyReport(status=status, message=message, source='model')
        except ServiceUnavailableError as e:
            logger.error(f"Narrative service failed: {e}")
            report = DailyReport(status=NarrativeStatus.CLOUDY, message=FALLBACK_MESSAGE, source='fallback')

        report.status = reconcile_narrative(assessment, report.status)
        logger.info(f"Daily report: {report.status.value} ({report.source})")
        return report
