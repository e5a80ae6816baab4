"""
Semantic coherence scoring of a read-aloud transcript.

The transcript of the reading sub-test is compared with the prompt text by
an external language model, which judges whether the reading shows signs
of aphasia or confusion (word substitutions, broken logic) while ignoring
plain recognition errors.

Failure policy:
- No API key: deterministic demo score (85)
- Client initialization, service or parsing failure: deterministic
  fallback score (80) and a "service unavailable" reasoning; the sub-test
  never blocks on the service
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import google.generativeai as genai

from utils.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class CoherenceResult:
    """
    Coherence judgement.

    Attributes:
        score: 0-100, 100 = fully coherent reading
        reasoning: Short explanation
        source: 'model', 'demo' or 'fallback'
    """
    score: int
    reasoning: str
    source: str = 'model'


def parse_json_response(response_text: str) -> Dict[str, Any]:
    """
    Parse a model's JSON reply, tolerating markdown code fences.

    Raises:
        ServiceUnavailableError: empty or non-JSON reply
    """
    if not response_text:
        raise ServiceUnavailableError("Empty model response")

    clean_text = response_text.strip()
    if clean_text.startswith('```'):
        lines = clean_text.split('\n')
        clean_text = '\n'.join(lines[1:-1])
    if clean_text.startswith('json'):
        clean_text = clean_text[4:]
    clean_text = clean_text.strip()

    try:
        data = json.loads(clean_text)
    except json.JSONDecodeError as e:
        raise ServiceUnavailableError(f"Unparseable model response: {e}") from e

    if not isinstance(data, dict):
        raise ServiceUnavailableError("Model response is not a JSON object")
    return data


class GeminiCoherenceClient:
    """
    Gemini-backed transcript/prompt comparison.

    Usage:
        client = GeminiCoherenceClient()
        result = client.score(transcript, prompt_text)
    """

    def __init__(self, api_key: str = None, model_name: str = 'gemini-2.5-flash'):
        """Initialize Gemini coherence client."""
        self.api_key = api_key or os.getenv('GEMINI_API_KEY')

        if not self.api_key:
            raise ValueError("Gemini API key required. Set GEMINI_API_KEY environment variable.")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(model_name)

        logger.info(f"Gemini coherence client initialized ({model_name})")

    def _create_prompt(self, transcript: str, target_text: str) -> str:
        return f"""
You are a stroke assessment specialist. Compare the speech-recognition
transcript of a user reading aloud with the target text.

Target text: "{target_text}"
User transcript: "{transcript}"

Judge whether the user shows signs of aphasia or cognitive confusion.
Speech recognition may contain minor errors; ignore homophone or spelling
mistakes and focus only on logical and semantic errors.

Respond in this EXACT JSON format:
{{
  "score": 0-100,
  "reasoning": "one short sentence"
}}

100 means the reading is fully coherent.
"""

    def score(self, transcript: str, target_text: str) -> CoherenceResult:
        """
        Score a transcript against its target text.

        Raises:
            ServiceUnavailableError: request failed or reply unusable
        """
        try:
            response = self.model.generate_content(
                self._create_prompt(transcript, target_text),
                generation_config={'response_mime_type': 'application/json'}
            )
            text = response.text
        except Exception as e:
            raise ServiceUnavailableError(f"Gemini coherence request failed: {e}") from e

        data = parse_json_response(text)

        try:
            score = int(round(float(data.get('score', 0))))
        except (TypeError, ValueError) as e:
            raise ServiceUnavailableError(f"Invalid coherence score: {data.get('score')!r}") from e

        return CoherenceResult(
            score=max(0, min(100, score)),
            reasoning=str(data.get('reasoning') or 'Unable to analyze semantics'),
            source='model'
        )


class SpeechCoherenceScorer:
    """
    Coherence scoring with demo and fallback policy.

    A client is any object with score(transcript, target_text) ->
    CoherenceResult. Without one the scorer runs in demo mode, unless
    service_error records why the configured client could not be created;
    then every transcript gets the fallback score.
    """

    def __init__(self, config: Optional[Dict] = None, client=None, service_error: Optional[str] = None):
        reading_cfg = (config or {}).get('audio', {}).get('reading', {})
        self.demo_score = reading_cfg.get('demo_score', 85)
        self.fallback_score = reading_cfg.get('fallback_score', 80)
        self.client = client
        self.service_error = service_error

        if self.demo_mode:
            logger.warning("No coherence client configured; running in demo mode")

    @classmethod
    def from_environment(cls, config: Optional[Dict] = None) -> 'SpeechCoherenceScorer':
        """
        Use Gemini when GEMINI_API_KEY is set, demo mode otherwise.

        A client that fails to initialize leaves the instance in fallback mode.
        """
        if not os.getenv('GEMINI_API_KEY'):
            return cls(config)
        model_name = (config or {}).get('audio', {}).get('reading', {}).get('model_name', 'gemini-2.5-flash')
        try:
            client = GeminiCoherenceClient(model_name=model_name)
        except Exception as e:
            logger.error(f"Gemini coherence client initialization failed: {e}")
            return cls(config, service_error=str(e))
        return cls(config, client=client)

    @property
    def demo_mode(self) -> bool:
        return self.client is None and self.service_error is None

    def score(self, transcript: str, target_text: str) -> CoherenceResult:
        """Never raises: service failures map to the fallback score."""
        if self.demo_mode:
            return CoherenceResult(
                score=self.demo_score,
                reasoning="Demo mode: semantic analysis requires an API key",
                source='demo'
            )

        try:
            if self.client is None:
                raise ServiceUnavailableError(f"Coherence client unavailable: {self.service_error}")
            result = self.client.score(transcript, target_text)
        except ServiceUnavailableError as e:
            logger.error(f"Coherence service failed: {e}")
            return CoherenceResult(
                score=self.fallback_score,
                reasoning="Semantic analysis service unavailable",
                source='fallback'
            )

        logger.info(f"Coherence score: {result.score}")
        return result
