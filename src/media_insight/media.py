from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath


SUPPORTED_VIDEO_TYPES = (
    "video/mp4",
    "video/mpeg",
    "video/webm",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-m4v",
    "video/3gpp",
    "video/x-matroska",
)

SUPPORTED_AUDIO_TYPES = (
    "audio/mpeg",
    "audio/mp4",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "audio/flac",
    "audio/x-flac",
    "audio/aac",
)

# Formats the hosted transcription backend accepts are a subset of these.
_MIME_TYPES_BY_EXTENSION = {
    "mp4": "video/mp4",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "wav": "audio/wav",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "mpeg": "video/mpeg",
    "mpg": "video/mpeg",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
}

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class MediaReference:
    """Identifies an uploaded media file in blob storage."""

    location_key: str
    file_name: str
    file_type: str
    size_bytes: int | None = None


def is_analyzable_video(file_type: str) -> bool:
    normalized = file_type.lower()
    return normalized.startswith("video/") or normalized in SUPPORTED_VIDEO_TYPES


def is_analyzable_audio(file_type: str) -> bool:
    normalized = file_type.lower()
    return normalized.startswith("audio/") or normalized in SUPPORTED_AUDIO_TYPES


def is_analyzable_media(file_type: str) -> bool:
    return is_analyzable_video(file_type) or is_analyzable_audio(file_type)


def supported_video_extensions() -> list[str]:
    return [".mp4", ".mov", ".avi", ".webm", ".mpeg", ".m4v"]


def supported_audio_extensions() -> list[str]:
    return [".mp3", ".m4a", ".wav", ".webm", ".ogg", ".flac"]


def file_extension(file_name: str, default: str = "") -> str:
    """Return the lower-cased extension of ``file_name`` without the dot."""

    suffix = PurePath(file_name).suffix.lstrip(".").lower()
    return suffix or default


def mime_type_for(file_name: str, default: str = DEFAULT_MIME_TYPE) -> str:
    return _MIME_TYPES_BY_EXTENSION.get(file_extension(file_name), default)
