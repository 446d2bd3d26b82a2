from __future__ import annotations

import json
import logging
import math
import os
import re
from typing import Any

import json_repair
import requests
from pydantic import ValidationError

from .errors import AnalysisBackendError
from .models import AnalysisResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"

MAX_ANALYSIS_CHARS = 80_000
TRUNCATION_MARKER = "\n\n[TRANSCRIPT TRUNCATED FOR LENGTH]"
WORDS_PER_MINUTE = 150

ANALYSIS_PROMPT = """You are an expert B2B content analyst specializing in extracting insights from video transcripts.

Your goal is to analyze the transcript and extract:
1. **Key Talking Points** - What are the main messages?
2. **Quotable Snippets** - What can be used in marketing materials?
3. **Pain Points** - What problems are being discussed?
4. **Speaker Insights** - Who is speaking and what's their perspective?

*** EXTRACTION RULES ***

1. **QUOTES MUST BE EXACT OR CLOSELY PARAPHRASED**
   - Don't invent statistics or quotes
   - If something is unclear, lower the confidence score

2. **PRIORITIZE ACTIONABLE CONTENT**
   - ROI stats with specific numbers
   - Customer testimonials
   - Clear value propositions
   - Competitive comparisons

3. **CONTEXT IS CRITICAL**
   - For every snippet, explain WHEN to use it
   - Example: "Use in cold email to address budget concerns"

4. **CONFIDENCE REFLECTS CLARITY**
   - Score how clearly the snippet was said and extracted, not its business value

5. **SPEAKER IDENTIFICATION**
   - If names are mentioned, use them
   - Otherwise use "Speaker 1", "Host", "Guest", etc.
   - Try to infer roles from context (CEO, customer, interviewer)

6. **QUALITY FILTERING**
   - If the transcript is mostly filler/small talk, return fewer snippets
   - Focus on substantive content

*** CONTENT TYPE CLASSIFICATION ***

- PODCAST_EPISODE: Long-form discussion, multiple speakers, educational
- WEBINAR_RECORDING: Structured presentation with Q&A
- PRODUCT_DEMO: Walkthrough of features/functionality
- CUSTOMER_TESTIMONIAL: Customer sharing their experience
- FOUNDER_MESSAGE: CEO/founder addressing audience
- INTERVIEW: Q&A format with host and guest
- PRESENTATION: Speaker presenting to audience
- TUTORIAL: How-to or educational content
- OTHER: Doesn't fit above categories
"""


def word_count(text: str) -> int:
    return len(text.split())


def estimate_duration_minutes(transcript: str) -> int:
    """Spoken duration at an average of 150 words per minute, rounded half up."""

    return math.floor(word_count(transcript) / WORDS_PER_MINUTE + 0.5)


def prepare_transcript(transcript: str, limit: int = MAX_ANALYSIS_CHARS) -> str:
    if len(transcript) <= limit:
        return transcript
    return transcript[:limit] + TRUNCATION_MARKER


def build_user_prompt(transcript: str, additional_context: str | None = None) -> str:
    if additional_context:
        return (
            f"Analyze this video transcript. Additional context: {additional_context}"
            f"\n\nTRANSCRIPT:\n{transcript}"
        )
    return f"Analyze this video transcript:\n\nTRANSCRIPT:\n{transcript}"


def analysis_json_schema() -> dict[str, Any]:
    """JSON schema for ``AnalysisResult`` in the strict form structured outputs expect.

    Strict mode rejects ``$ref`` nodes that carry other keywords, so such
    references are inlined from ``$defs`` before the rest of the node is
    processed.
    """

    schema = AnalysisResult.model_json_schema(by_alias=True)
    return make_strict_schema(schema, schema.get("$defs", {}))


# Bounds are enforced by AnalysisResult validation after the response arrives.
_NON_STRICT_KEYWORDS = frozenset({"default", "title", "maxItems", "maxLength", "minimum", "maximum"})
# Keywords whose value maps arbitrary names to subschemas.
_SCHEMA_MAPPINGS = frozenset({"properties", "$defs"})


def _resolve_ref(ref: str, defs: dict[str, Any]) -> dict[str, Any]:
    prefix = "#/$defs/"
    if not ref.startswith(prefix) or ref[len(prefix):] not in defs:
        raise ValueError(f"Cannot resolve schema reference {ref!r}")
    return defs[ref[len(prefix):]]


def make_strict_schema(node: Any, defs: dict[str, Any]) -> Any:
    if isinstance(node, list):
        return [make_strict_schema(item, defs) for item in node]
    if not isinstance(node, dict):
        return node

    if "$ref" in node and len(node) > 1:
        siblings = {key: value for key, value in node.items() if key != "$ref"}
        return make_strict_schema({**_resolve_ref(node["$ref"], defs), **siblings}, defs)

    strict: dict[str, Any] = {}
    for key, value in node.items():
        if key in _NON_STRICT_KEYWORDS:
            continue
        if key in _SCHEMA_MAPPINGS and isinstance(value, dict):
            strict[key] = {name: make_strict_schema(sub, defs) for name, sub in value.items()}
        else:
            strict[key] = make_strict_schema(value, defs)

    if strict.get("type") == "object" and "properties" in strict:
        strict["required"] = list(strict["properties"])
        strict["additionalProperties"] = False
    return strict


class TranscriptAnalyzer:
    """Extracts structured marketing insight from a transcript via chat completions."""

    def __init__(
        self,
        *,
        api_token: str | None = None,
        base_url: str | None = None,
        model: str = "gpt-4o-2024-08-06",
        temperature: float = 0.2,
        timeout: int = 120,
    ) -> None:
        self.api_token = api_token or os.getenv("OPENAI_API_KEY")
        if not self.api_token:
            raise RuntimeError("OPENAI_API_KEY is not set")

        self.base_url = (base_url or os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def analyze(self, transcript: str, *, additional_context: str | None = None) -> AnalysisResult:
        safe_transcript = prepare_transcript(transcript)
        if len(transcript) > MAX_ANALYSIS_CHARS:
            logger.info(
                "Transcript truncated from %d to %d characters for analysis",
                len(transcript),
                MAX_ANALYSIS_CHARS,
            )

        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": ANALYSIS_PROMPT},
                {"role": "user", "content": build_user_prompt(safe_transcript, additional_context)},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": "video_analysis",
                    "strict": True,
                    "schema": analysis_json_schema(),
                },
            },
            "temperature": self.temperature,
        }

        headers = {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }

        try:
            response = requests.post(
                f"{self.base_url}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise AnalysisBackendError(f"Analysis request failed: {exc}") from exc

        try:
            data = response.json()
            message = data["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise AnalysisBackendError("Unexpected analysis response payload") from exc

        refusal = message.get("refusal") if isinstance(message, dict) else None
        if refusal:
            raise AnalysisBackendError(f"Analysis model refused the request: {refusal}")

        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise AnalysisBackendError("AI failed to generate structured video analysis")

        parsed = self._parse_content(content)
        if parsed is None:
            raise AnalysisBackendError("Analysis response is not valid JSON")

        try:
            result = AnalysisResult.model_validate(parsed)
        except ValidationError as exc:
            raise AnalysisBackendError(f"Analysis response does not match the schema: {exc}") from exc

        analysed = result.model_copy(
            update={
                "transcript": transcript,
                "estimated_duration_minutes": estimate_duration_minutes(transcript),
            }
        )
        logger.info("Video analysis complete: %d snippets extracted", len(analysed.snippets))
        return analysed

    @staticmethod
    def _parse_content(content: str) -> dict[str, Any] | None:
        text = content.strip()
        fenced = re.search(r"```(?:json)?\s*(.*?)```", text, flags=re.DOTALL)
        if fenced:
            text = fenced.group(1).strip()

        try:
            loaded = json.loads(text)
        except json.JSONDecodeError:
            try:
                loaded = json_repair.loads(text)
            except Exception:  # noqa: BLE001 - any repair failure means unparseable output
                return None
        return loaded if isinstance(loaded, dict) else None


def analysis_to_text(analysis: AnalysisResult) -> str:
    """Render an analysis as plain text for downstream text-only analysers."""

    parts = [
        f"[VIDEO TRANSCRIPT - {analysis.content_type.value}]",
        "",
        f"SUMMARY: {analysis.summary}",
        "",
        f"TOPICS: {', '.join(analysis.topics)}",
        "",
        f"PAIN POINTS DISCUSSED: {', '.join(analysis.pain_points_mentioned)}",
        "",
        "--- FULL TRANSCRIPT ---",
        analysis.transcript,
        "",
        "--- KEY SNIPPETS ---",
        *(
            f'[{snippet.type.value}] "{snippet.content}" - {snippet.context}'
            for snippet in analysis.snippets
        ),
    ]
    return "\n".join(parts)
