from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .analyzer import TranscriptAnalyzer
from .asr_client import WhisperTranscriptionClient
from .audio import Transcoder, extract_audio_track
from .errors import (
    ExtractionFailed,
    NoSpeechDetected,
    PipelineFailed,
    audio_too_large,
    extracted_audio_too_large,
    extraction_failed_too_large,
    file_too_large,
    unsupported_file_too_large,
)
from .media import MediaReference, mime_type_for
from .models import AnalysisResult, ExtractionOutcome, Segment
from .segments import SegmentStore, SqliteSegmentStore
from .storage import BlobStorage
from .strategy import (
    FALLBACK_LIMIT,
    MAX_PROCESSABLE,
    TRANSCRIBE_LIMIT,
    ProcessingStrategy,
    RejectionReason,
    describe_rejection,
    select_strategy,
)

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    SELECTING = "selecting"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    PERSISTING = "persisting"
    ANALYZING = "analyzing"
    DONE = "done"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class MediaAnalysisRequest:
    media_location_key: str
    file_name: str
    file_type: str
    additional_context: Optional[str] = None
    asset_id: Optional[str] = None
    # Size reported by storage metadata, used to reject oversized files before download.
    size_hint: Optional[int] = None

    @classmethod
    def from_reference(
        cls,
        reference: MediaReference,
        *,
        additional_context: Optional[str] = None,
        asset_id: Optional[str] = None,
    ) -> "MediaAnalysisRequest":
        return cls(
            media_location_key=reference.location_key,
            file_name=reference.file_name,
            file_type=reference.file_type,
            additional_context=additional_context,
            asset_id=asset_id,
            size_hint=reference.size_bytes,
        )


def _enter(stage: PipelineStage, file_name: str, detail: str = "") -> None:
    logger.info("[%s] %s%s", stage.value, file_name, f" - {detail}" if detail else "")


def prepare_transcription_input(
    media_bytes: bytes,
    file_name: str,
    file_type: str,
    *,
    transcoder: Transcoder | None = None,
    scratch_dir: Path | str | None = None,
) -> ExtractionOutcome:
    """Turn downloaded bytes into a payload the transcription backend accepts.

    Raises ``SizeExceeded`` for rejected files and ``PipelineFailed`` when
    extraction fails on a video too large to send as-is.
    """

    size = len(media_bytes)
    passthrough = ExtractionOutcome(
        audio_bytes=media_bytes,
        extracted=False,
        source_file_name=file_name,
        file_name=file_name,
        mime_type=mime_type_for(file_name, default=file_type),
    )

    _enter(PipelineStage.SELECTING, file_name, f"{size} bytes, type {file_type}")
    strategy = select_strategy(size, file_type)

    if strategy is ProcessingStrategy.PASSTHROUGH:
        return passthrough

    if strategy is ProcessingStrategy.REJECT:
        _enter(PipelineStage.REJECTED, file_name)
        reason = describe_rejection(size, file_type)
        if reason is RejectionReason.FILE_TOO_LARGE:
            raise file_too_large(size)
        if reason is RejectionReason.AUDIO_TOO_LARGE:
            raise audio_too_large(size)
        raise unsupported_file_too_large(size, file_type)

    _enter(PipelineStage.EXTRACTING, file_name)
    try:
        outcome = extract_audio_track(
            media_bytes,
            file_name,
            transcoder=transcoder,
            scratch_dir=scratch_dir,
        )
    except ExtractionFailed as exc:
        if size <= FALLBACK_LIMIT:
            logger.warning(
                "Audio extraction failed for %s, trying to transcribe the original directly: %s",
                file_name,
                exc,
            )
            return passthrough
        _enter(PipelineStage.FAILED, file_name, "extraction failed")
        raise extraction_failed_too_large(size) from exc

    # Oversized extracted audio is rejected outright, not sent through the extraction-failure fallback.
    if len(outcome.audio_bytes) > TRANSCRIBE_LIMIT:
        _enter(PipelineStage.REJECTED, file_name, "extracted audio over limit")
        raise extracted_audio_too_large(len(outcome.audio_bytes))

    return outcome


def _persist_segments(
    asset_id: str,
    segments: list[Segment],
    segment_store: SegmentStore | None,
) -> None:
    _enter(PipelineStage.PERSISTING, asset_id, f"{len(segments)} segments")
    try:
        store = segment_store if segment_store is not None else SqliteSegmentStore()
        store.replace_segments(asset_id, segments)
    except Exception as exc:  # noqa: BLE001 - deep search data is optional, the analysis is not
        logger.warning("Failed to save transcript segments for asset %s: %s", asset_id, exc)
        return
    logger.info("Saved transcript segments for deep search: asset %s", asset_id)


def analyze_media(
    request: MediaAnalysisRequest,
    *,
    storage: BlobStorage,
    transcription_client: Optional[WhisperTranscriptionClient] = None,
    analyzer: Optional[TranscriptAnalyzer] = None,
    transcoder: Transcoder | None = None,
    segment_store: SegmentStore | None = None,
    scratch_dir: Path | str | None = None,
) -> AnalysisResult:
    """Run the audio-first pipeline from a stored media file to structured insight.

    Steps run strictly in order: size selection, optional audio extraction,
    transcription, best-effort segment persistence (only when ``asset_id`` is
    given) and transcript analysis.
    """

    file_name = request.file_name

    if request.size_hint is not None and request.size_hint > MAX_PROCESSABLE:
        _enter(PipelineStage.REJECTED, file_name, "size hint over limit")
        raise file_too_large(request.size_hint)

    try:
        media_bytes = storage.download(request.media_location_key)
    except Exception as exc:  # noqa: BLE001 - storage is a black box; any failure is terminal
        _enter(PipelineStage.FAILED, file_name, "download failed")
        raise PipelineFailed(f"Failed to download {request.media_location_key}: {exc}") from exc
    logger.info("Downloaded %s: %d bytes", file_name, len(media_bytes))

    payload = prepare_transcription_input(
        media_bytes,
        file_name,
        request.file_type,
        transcoder=transcoder,
        scratch_dir=scratch_dir,
    )

    asr = transcription_client if transcription_client is not None else WhisperTranscriptionClient()

    _enter(PipelineStage.TRANSCRIBING, payload.file_name, "extracted audio" if payload.extracted else "original")
    segments: list[Segment] = []
    if request.asset_id:
        transcription = asr.transcribe_segmented(
            payload.audio_bytes,
            payload.file_name,
            payload.mime_type,
            asset_id=request.asset_id,
        )
        transcript = transcription.full_text
        segments = list(transcription.segments or [])
    else:
        transcript = asr.transcribe_text(payload.audio_bytes, payload.file_name, payload.mime_type)

    if not transcript or not transcript.strip():
        _enter(PipelineStage.FAILED, file_name, "no speech detected")
        raise NoSpeechDetected()

    if request.asset_id and segments:
        _persist_segments(request.asset_id, segments, segment_store)

    llm = analyzer if analyzer is not None else TranscriptAnalyzer()
    _enter(PipelineStage.ANALYZING, file_name, f"{len(transcript)} characters")
    result = llm.analyze(transcript, additional_context=request.additional_context)

    _enter(PipelineStage.DONE, file_name, f"{len(result.snippets)} snippets")
    return result
