"""Audio-first media analysis: transcription and structured marketing insight."""

from .analyzer import TranscriptAnalyzer, analysis_to_text
from .asr_client import WhisperTranscriptionClient
from .audio import FfmpegTranscoder, default_transcoder, extract_audio_track
from .errors import (
    AnalysisBackendError,
    ErrorKind,
    ExtractionFailed,
    MediaInsightError,
    NoSpeechDetected,
    PipelineFailed,
    SegmentPersistenceError,
    SizeExceeded,
    TranscriptionBackendError,
)
from .media import MediaReference
from .models import AnalysisResult, Segment
from .pipeline import MediaAnalysisRequest, analyze_media
from .segments import InMemorySegmentStore, SqliteSegmentStore
from .storage import HttpStorage, LocalDirectoryStorage
from .strategy import ProcessingStrategy, RejectionReason, describe_rejection, select_strategy

__all__ = [
    "AnalysisBackendError",
    "AnalysisResult",
    "ErrorKind",
    "ExtractionFailed",
    "FfmpegTranscoder",
    "HttpStorage",
    "InMemorySegmentStore",
    "LocalDirectoryStorage",
    "MediaAnalysisRequest",
    "MediaInsightError",
    "MediaReference",
    "NoSpeechDetected",
    "PipelineFailed",
    "ProcessingStrategy",
    "RejectionReason",
    "Segment",
    "SegmentPersistenceError",
    "SizeExceeded",
    "SqliteSegmentStore",
    "TranscriptAnalyzer",
    "TranscriptionBackendError",
    "WhisperTranscriptionClient",
    "analysis_to_text",
    "analyze_media",
    "default_transcoder",
    "describe_rejection",
    "extract_audio_track",
    "select_strategy",
]
