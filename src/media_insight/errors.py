from __future__ import annotations

from enum import Enum

from .strategy import MAX_PROCESSABLE, TRANSCRIBE_LIMIT, size_in_megabytes

_VIDEO_COMPRESS_COMMAND = (
    "ffmpeg -i input.mp4 -vf scale=1280:-1 -c:v libx264 -crf 28 -preset fast -c:a aac -b:a 128k output.mp4"
)
_AUDIO_EXTRACT_COMMAND = "ffmpeg -i video.mp4 -vn -acodec libmp3lame -ab 64k audio.mp3"
_AUDIO_COMPRESS_COMMAND = "ffmpeg -i input.wav -ac 1 -ar 16000 -b:a 64k output.mp3"


class ErrorKind(str, Enum):
    SIZE_EXCEEDED = "size_exceeded"
    EXTRACTION_FAILED = "extraction_failed"
    NO_SPEECH_DETECTED = "no_speech_detected"
    TRANSCRIPTION_BACKEND = "transcription_backend"
    SEGMENT_PERSISTENCE = "segment_persistence"
    ANALYSIS_BACKEND = "analysis_backend"
    FAILED = "failed"


class MediaInsightError(RuntimeError):
    """Base class for every failure the pipeline reports to its caller."""

    kind: ErrorKind = ErrorKind.FAILED

    def __init__(self, message: str, *, remediation: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.remediation = remediation

    def user_message(self) -> str:
        if self.remediation:
            return f"{self.message}\n\n{self.remediation}"
        return self.message


class SizeExceeded(MediaInsightError):
    """Raised when a file is too large for any processing path."""

    kind = ErrorKind.SIZE_EXCEEDED


class ExtractionFailed(MediaInsightError):
    """Raised when the audio track could not be extracted from a video."""

    kind = ErrorKind.EXTRACTION_FAILED


class NoSpeechDetected(MediaInsightError):
    kind = ErrorKind.NO_SPEECH_DETECTED

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "No speech detected in video. The video may be silent or contain only music."
        )


class TranscriptionBackendError(MediaInsightError):
    kind = ErrorKind.TRANSCRIPTION_BACKEND


class SegmentPersistenceError(MediaInsightError):
    kind = ErrorKind.SEGMENT_PERSISTENCE


class AnalysisBackendError(MediaInsightError):
    kind = ErrorKind.ANALYSIS_BACKEND


class PipelineFailed(MediaInsightError):
    kind = ErrorKind.FAILED


def _limits_line() -> str:
    return (
        f"Target file size: under {size_in_megabytes(TRANSCRIBE_LIMIT)}MB for direct upload, "
        f"or under {size_in_megabytes(MAX_PROCESSABLE)}MB for processing."
    )


def video_compression_remediation(size_bytes: int) -> str:
    """Remediation for a video that is too large to process as uploaded."""

    if size_in_megabytes(size_bytes) > 100:
        return (
            "For very large videos, please compress using tools like:\n"
            "• HandBrake (free, recommended)\n"
            "• Adobe Media Encoder\n"
            f"• FFmpeg command: {_VIDEO_COMPRESS_COMMAND}\n"
            f"{_limits_line()}"
        )
    return (
        "Please try:\n"
        "1. Compress the video using HandBrake or similar tool\n"
        f"2. Extract audio manually: {_AUDIO_EXTRACT_COMMAND}\n"
        "3. Upload the compressed video or extracted audio instead\n"
        f"{_limits_line()}"
    )


def audio_compression_remediation() -> str:
    return (
        "Please compress the audio first, for example by converting it to mono 64kbps MP3:\n"
        f"• FFmpeg command: {_AUDIO_COMPRESS_COMMAND}\n"
        f"Target file size: under {size_in_megabytes(TRANSCRIBE_LIMIT)}MB."
    )


def file_too_large(size_bytes: int) -> SizeExceeded:
    return SizeExceeded(
        f"File too large ({size_in_megabytes(size_bytes)}MB). "
        f"Maximum processable size is {size_in_megabytes(MAX_PROCESSABLE)}MB. "
        "Please compress the video first.",
        remediation=video_compression_remediation(size_bytes),
    )


def audio_too_large(size_bytes: int) -> SizeExceeded:
    return SizeExceeded(
        f"Audio file too large ({size_in_megabytes(size_bytes)}MB). "
        f"Maximum size for audio is {size_in_megabytes(TRANSCRIBE_LIMIT)}MB.",
        remediation=audio_compression_remediation(),
    )


def extracted_audio_too_large(size_bytes: int) -> SizeExceeded:
    return SizeExceeded(
        f"Extracted audio is still too large ({size_in_megabytes(size_bytes)}MB). "
        "This video may have very long audio.",
        remediation=(
            "Please trim the video to under 2 hours, or split it into shorter parts "
            f"and upload each one separately.\n{_limits_line()}"
        ),
    )


def extraction_failed_too_large(size_bytes: int) -> PipelineFailed:
    return PipelineFailed(
        f"Audio extraction failed and video is too large ({size_in_megabytes(size_bytes)}MB).",
        remediation=video_compression_remediation(size_bytes),
    )


def unsupported_file_too_large(size_bytes: int, file_type: str) -> SizeExceeded:
    return SizeExceeded(
        f"File of type {file_type or 'unknown'} is too large ({size_in_megabytes(size_bytes)}MB). "
        f"Only video files over {size_in_megabytes(TRANSCRIBE_LIMIT)}MB can be processed.",
        remediation=(
            "Please upload a supported video or audio file, or convert this one to MP4 or MP3.\n"
            f"{_limits_line()}"
        ),
    )
