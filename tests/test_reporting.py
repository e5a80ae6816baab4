import pytest # pyright: ignore[reportMissingImports]
from datetime import date, datetime
from pathlib import Path

# Import modules to test
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from reporting.history import latest_scores_for_day, round_half_up, summarize_history
import reporting.narrative as narrative_module
from reporting.narrative import EMPTY_MESSAGE, FALLBACK_MESSAGE, DailyReportGenerator
from scoring.models import BaselineProfile, Domain, HistoryRecord, NarrativeStatus, VisualBaseline
from utils.errors import ServiceUnavailableError

TODAY = date(2026, 10, 18)


def record(domain, score, day, hour=9, minute=0):
    """History record at local time on the given day."""
    moment = datetime(day.year, day.month, day.day, hour, minute)
    return HistoryRecord(type=domain, score=score, details="", timestamp=int(moment.timestamp() * 1000))


def week_records():
    return [
        record(Domain.AUDIO, 80, date(2026, 10, 17)),
        record(Domain.TOUCH, 70, date(2026, 10, 17), hour=10),
        record(Domain.VISUAL, 90, date(2026, 10, 16)),
        record(Domain.AUDIO, 60, date(2026, 10, 14)),
        # Outside the seven-day window
        record(Domain.AUDIO, 10, date(2026, 10, 10)),
    ]


class TestRoundHalfUp:
    def test_rounding(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(74.5) == 75
        assert round_half_up(74.49) == 74


class TestSummarizeHistory:
    """Test the calendar, streak and trend."""

    def test_calendar_labels(self):
        summary = summarize_history(week_records(), today=TODAY)
        assert len(summary.days) == 7
        assert summary.days[0].day == date(2026, 10, 12)
        assert summary.days[0].label == "10.12"
        assert summary.days[-2].label == "Yesterday"
        assert summary.days[-1].label == "Today"
        assert summary.days[-1].is_today

    def test_day_scores(self):
        summary = summarize_history(week_records(), today=TODAY)
        by_day = {d.day: d for d in summary.days}
        assert by_day[date(2026, 10, 17)].score == 75
        assert by_day[date(2026, 10, 16)].score == 90
        assert not by_day[date(2026, 10, 15)].completed
        assert by_day[date(2026, 10, 15)].score == 0

    def test_streak_with_today_done(self):
        summary = summarize_history(week_records(), {Domain.VISUAL: 100, Domain.AUDIO: 95}, today=TODAY)
        assert summary.streak == 3
        assert summary.days[-1].score == 98

    def test_streak_counts_from_yesterday(self):
        summary = summarize_history(week_records(), today=TODAY)
        assert summary.streak == 2
        assert summary.today_average is None

    def test_history_average_excludes_today(self):
        records = week_records() + [record(Domain.TOUCH, 20, TODAY)]
        summary = summarize_history(records, today=TODAY)
        assert summary.history_average == 75
        assert summary.days[-1].score == 20

    def test_live_scores_supersede_todays_records(self):
        records = week_records() + [record(Domain.TOUCH, 20, TODAY)]
        summary = summarize_history(records, {Domain.TOUCH: 90}, today=TODAY)
        assert summary.days[-1].score == 90

    def test_improving(self):
        summary = summarize_history(week_records(), {Domain.VISUAL: 100, Domain.AUDIO: 95}, today=TODAY)
        assert summary.today_average == 97.5
        assert summary.history_average == 75
        assert summary.improving

    def test_not_improving_within_margin(self):
        summary = summarize_history(week_records(), {Domain.AUDIO: 80}, today=TODAY)
        assert not summary.improving

    def test_empty_history(self):
        summary = summarize_history([], today=TODAY)
        assert summary.streak == 0
        assert summary.history_average is None
        assert not summary.improving


class TestLatestScores:
    def test_latest_per_domain(self):
        records = [
            record(Domain.AUDIO, 60, TODAY, hour=8),
            record(Domain.AUDIO, 85, TODAY, hour=11),
            record(Domain.TOUCH, 70, TODAY, hour=9),
            record(Domain.VISUAL, 40, date(2026, 10, 17)),
        ]
        assert latest_scores_for_day(records, TODAY) == {Domain.AUDIO: 85, Domain.TOUCH: 70}


class StubNarrativeClient:
    def __init__(self, reply=None, error=False):
        self.reply = reply or {}
        self.error = error
        self.prompts = []

    def generate(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise ServiceUnavailableError("timeout")
        return self.reply


class TestDailyReportGenerator:
    """Test model, fallback and demo reports."""

    def test_no_scores(self):
        report = DailyReportGenerator().generate({})
        assert report.status == NarrativeStatus.SUNNY
        assert report.message == EMPTY_MESSAGE
        assert report.source == 'empty'

    def test_model_sunny_overridden_by_danger(self):
        client = StubNarrativeClient({'status': 'SUNNY', 'message': 'All good today.'})
        generator = DailyReportGenerator(client=client)
        report = generator.generate({Domain.VISUAL: 100, Domain.AUDIO: 100, Domain.TOUCH: 50})
        assert report.status == NarrativeStatus.STORM
        assert report.message == 'All good today.'
        assert report.source == 'model'

    def test_model_status_kept_when_not_critical(self):
        client = StubNarrativeClient({'status': 'cloudy', 'message': 'Rest a little.'})
        report = DailyReportGenerator(client=client).generate({Domain.AUDIO: 75})
        assert report.status == NarrativeStatus.CLOUDY

    def test_unknown_status_defaults_to_sunny(self):
        client = StubNarrativeClient({'status': 'RAINY', 'message': 'Hmm.'})
        report = DailyReportGenerator(client=client).generate({Domain.AUDIO: 95})
        assert report.status == NarrativeStatus.SUNNY

    def test_service_failure(self):
        generator = DailyReportGenerator(client=StubNarrativeClient(error=True))
        report = generator.generate({Domain.AUDIO: 95})
        assert report.status == NarrativeStatus.CLOUDY
        assert report.message == FALLBACK_MESSAGE
        assert report.source == 'fallback'

    def test_service_failure_still_storms_on_danger(self):
        generator = DailyReportGenerator(client=StubNarrativeClient(error=True))
        report = generator.generate({Domain.AUDIO: 95, Domain.TOUCH: 40})
        assert report.status == NarrativeStatus.STORM
        assert report.source == 'fallback'

    def test_client_initialization_failure(self, monkeypatch):
        def broken_client(**kwargs):
            raise RuntimeError("invalid credentials")

        monkeypatch.setenv('GEMINI_API_KEY', 'test-key')
        monkeypatch.setattr(narrative_module, 'GeminiNarrativeClient', broken_client)
        generator = DailyReportGenerator.from_environment()

        assert not generator.demo_mode
        report = generator.generate({Domain.AUDIO: 95})
        assert report.status == NarrativeStatus.CLOUDY
        assert report.message == FALLBACK_MESSAGE
        assert report.source == 'fallback'
        assert generator.generate({Domain.AUDIO: 95, Domain.TOUCH: 40}).status == NarrativeStatus.STORM

    def test_empty_message_is_a_failure(self):
        client = StubNarrativeClient({'status': 'SUNNY', 'message': ''})
        report = DailyReportGenerator(client=client).generate({Domain.AUDIO: 95})
        assert report.source == 'fallback'

    def test_prompt_contents(self):
        client = StubNarrativeClient({'status': 'STORM', 'message': 'Please see a doctor.'})
        DailyReportGenerator(client=client).generate({Domain.AUDIO: 90, Domain.TOUCH: 50}, history_average=82)
        prompt = client.prompts[0]
        assert "Facial symmetry: not tested" in prompt
        assert "Motor control: 50" in prompt
        assert "- Lowest: 50" in prompt
        assert "7-day average: 82" in prompt
        assert "has not set up a baseline" in prompt

    def test_demo_caution(self):
        report = DailyReportGenerator().generate({Domain.AUDIO: 70, Domain.TOUCH: 75})
        assert report.status == NarrativeStatus.CLOUDY
        assert report.message.startswith("(Demo mode) ")
        assert report.source == 'demo'

    def test_demo_danger(self):
        report = DailyReportGenerator().generate({Domain.AUDIO: 95, Domain.TOUCH: 30})
        assert report.status == NarrativeStatus.STORM

    def test_demo_excellent(self):
        report = DailyReportGenerator().generate({Domain.AUDIO: 95, Domain.VISUAL: 100})
        assert report.status == NarrativeStatus.SUNNY
        assert "Excellent" in report.message

    def test_demo_improving_trend(self):
        baseline = BaselineProfile(visual=VisualBaseline(eye_sym=95.0, mouth_sym=92.0, brow_sym=96.0))
        report = DailyReportGenerator().generate({Domain.AUDIO: 85}, baseline=baseline, history_average=70)
        assert report.status == NarrativeStatus.SUNNY
        assert report.message.endswith("The recent trend is improving.")

    def test_demo_no_trend_without_baseline(self):
        report = DailyReportGenerator().generate({Domain.AUDIO: 85}, history_average=70)
        assert "improving" not in report.message
