from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ExtractionOutcome:
    """Audio payload handed to transcription.

    ``extracted`` is ``False`` when the original bytes are passed through
    unchanged because they already fit the transcription limit.
    """

    audio_bytes: bytes
    extracted: bool
    source_file_name: str
    file_name: str
    mime_type: str


@dataclass(frozen=True)
class Segment:
    start_seconds: float
    end_seconds: float
    text: str
    asset_id: Optional[str] = None
    speaker: Optional[str] = None


@dataclass(frozen=True)
class TranscriptionOutcome:
    full_text: str
    segments: Optional[list[Segment]] = None


class ContentType(str, Enum):
    PODCAST_EPISODE = "PODCAST_EPISODE"
    WEBINAR_RECORDING = "WEBINAR_RECORDING"
    PRODUCT_DEMO = "PRODUCT_DEMO"
    CUSTOMER_TESTIMONIAL = "CUSTOMER_TESTIMONIAL"
    FOUNDER_MESSAGE = "FOUNDER_MESSAGE"
    INTERVIEW = "INTERVIEW"
    PRESENTATION = "PRESENTATION"
    TUTORIAL = "TUTORIAL"
    OTHER = "OTHER"


class SuggestedAssetType(str, Enum):
    WHITEPAPER = "Whitepaper"
    CASE_STUDY = "Case_Study"
    BLOG_POST = "Blog_Post"
    INFOGRAPHIC = "Infographic"
    WEBINAR_RECORDING = "Webinar_Recording"
    SALES_DECK = "Sales_Deck"
    TECHNICAL_DOC = "Technical_Doc"


class SnippetType(str, Enum):
    ROI_STAT = "ROI_STAT"
    CUSTOMER_QUOTE = "CUSTOMER_QUOTE"
    VALUE_PROP = "VALUE_PROP"
    COMPETITIVE_WEDGE = "COMPETITIVE_WEDGE"
    PAIN_POINT = "PAIN_POINT"
    CALL_TO_ACTION = "CALL_TO_ACTION"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SpeakerInsight(_CamelModel):
    speaker_label: str = Field(
        alias="speakerLabel",
        description="Label for the speaker (e.g., 'Speaker 1', 'Host', 'Guest', or name if identified).",
    )
    key_points: list[str] = Field(
        alias="keyPoints", max_length=5, description="Main points made by this speaker."
    )
    estimated_role: Optional[str] = Field(
        default=None,
        alias="estimatedRole",
        description="Inferred role (e.g., 'CEO', 'Customer', 'Interviewer', 'Product Expert').",
    )


class Snippet(_CamelModel):
    type: SnippetType = Field(description="The category of this spoken content.")
    content: str = Field(
        max_length=280,
        description="The exact quote or paraphrased statement (under 280 chars for social readiness).",
    )
    timestamp: Optional[str] = Field(
        default=None, description="Approximate timestamp if detectable (e.g., '2:30')."
    )
    speaker: Optional[str] = Field(default=None, description="Who said this (if identifiable).")
    context: str = Field(
        description="How/when to use this snippet (e.g., 'Use in email sequence for objection handling')."
    )
    confidence_score: float = Field(
        alias="confidenceScore",
        ge=1,
        le=100,
        description="How clearly this snippet was extracted. 100 = unambiguous sound bite.",
    )


class AnalysisResult(_CamelModel):
    content_type: ContentType = Field(alias="contentType", description="The type of video content.")
    transcript: str = Field(description="The full transcription of the audio.")
    summary: str = Field(
        max_length=500, description="A brief executive summary of the video content (max 500 chars)."
    )
    speakers: list[SpeakerInsight] = Field(
        max_length=5, description="Insights about each speaker (if multiple speakers detected)."
    )
    snippets: list[Snippet] = Field(
        max_length=10, description="Extracted valuable quotes, stats, and talking points."
    )
    topics: list[str] = Field(max_length=8, description="Main topics or themes discussed in the video.")
    pain_points_mentioned: list[str] = Field(
        alias="painPointsMentioned", max_length=5, description="Customer pain points or problems discussed."
    )
    suggested_asset_type: SuggestedAssetType = Field(
        alias="suggestedAssetType",
        description="Based on the content, what marketing asset type best represents this?",
    )
    audio_quality_score: float = Field(
        alias="audioQualityScore",
        ge=1,
        le=100,
        description="Overall audio quality. 100 = Studio quality, clear speech.",
    )
    estimated_duration_minutes: float = Field(
        alias="estimatedDurationMinutes", description="Estimated duration of the video in minutes."
    )

    def to_payload(self) -> dict:
        """Return the camelCase JSON-compatible form of the result."""

        return self.model_dump(mode="json", by_alias=True)
