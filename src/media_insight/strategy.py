from __future__ import annotations

from enum import Enum

from .media import is_analyzable_audio, is_analyzable_video

MEGABYTE = 1024 * 1024

# Hard ceiling of the hosted transcription backend.
TRANSCRIBE_LIMIT = 25 * MEGABYTE
MAX_PROCESSABLE = 500 * MEGABYTE
# Largest original that may still be sent directly when extraction fails.
FALLBACK_LIMIT = 2 * TRANSCRIBE_LIMIT


class ProcessingStrategy(str, Enum):
    PASSTHROUGH = "passthrough"
    EXTRACT_THEN_TRANSCRIBE = "extract_then_transcribe"
    REJECT = "reject"


def select_strategy(size_bytes: int, file_type: str) -> ProcessingStrategy:
    """Map the size and MIME type of a media file to a processing path.

    Files within the transcription limit go straight to transcription. Larger
    videos up to ``MAX_PROCESSABLE`` have their audio track extracted first.
    Everything else is rejected: oversized audio cannot be shrunk by this
    pipeline, and nothing above ``MAX_PROCESSABLE`` is attempted.
    """

    if size_bytes < 0:
        raise ValueError("size_bytes must be non-negative")

    if size_bytes <= TRANSCRIBE_LIMIT:
        return ProcessingStrategy.PASSTHROUGH
    if size_bytes > MAX_PROCESSABLE:
        return ProcessingStrategy.REJECT
    if is_analyzable_video(file_type):
        return ProcessingStrategy.EXTRACT_THEN_TRANSCRIBE
    return ProcessingStrategy.REJECT


class RejectionReason(str, Enum):
    FILE_TOO_LARGE = "file_too_large"
    AUDIO_TOO_LARGE = "audio_too_large"
    UNSUPPORTED_TOO_LARGE = "unsupported_too_large"


def describe_rejection(size_bytes: int, file_type: str) -> RejectionReason | None:
    """Return why ``select_strategy`` rejects a file, or ``None`` if it does not.

    Only videos can be shrunk by extraction, so an oversized audio file and an
    oversized file of any other type are told apart for the remediation text.
    """

    if select_strategy(size_bytes, file_type) is not ProcessingStrategy.REJECT:
        return None
    if size_bytes > MAX_PROCESSABLE:
        return RejectionReason.FILE_TOO_LARGE
    if is_analyzable_audio(file_type):
        return RejectionReason.AUDIO_TOO_LARGE
    return RejectionReason.UNSUPPORTED_TOO_LARGE


def size_in_megabytes(size_bytes: int) -> int:
    return round(size_bytes / MEGABYTE)
