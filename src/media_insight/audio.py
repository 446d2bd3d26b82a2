from __future__ import annotations

import functools
import logging
import os
import platform
import subprocess
import tempfile
import uuid
from pathlib import Path, PurePath
from typing import Callable, Mapping, Optional, Protocol

from pydub.utils import which

from .errors import ExtractionFailed
from .media import file_extension
from .models import ExtractionOutcome

logger = logging.getLogger(__name__)

FFMPEG_OVERRIDE_ENV = "MEDIA_INSIGHT_FFMPEG"
FFMPEG_BUNDLE_DIR_ENV = "MEDIA_INSIGHT_FFMPEG_DIR"

EXTRACTED_MIME_TYPE = "audio/mpeg"
SPEECH_CODEC = "mp3"
SPEECH_BITRATE = "64k"
SPEECH_CHANNELS = 1
SPEECH_SAMPLE_RATE = 16000


class Transcoder(Protocol):
    def transcode(
        self,
        input_path: Path,
        output_path: Path,
        *,
        codec: str,
        bitrate: str,
        channels: int,
        sample_rate: int,
    ) -> None:
        """Write an audio-only rendition of ``input_path`` to ``output_path``."""


class FfmpegTranscoder:
    """Runs an ffmpeg binary to strip video and re-encode the audio track."""

    def __init__(self, binary: str = "ffmpeg") -> None:
        self.binary = binary

    def build_command(
        self,
        input_path: Path,
        output_path: Path,
        *,
        codec: str,
        bitrate: str,
        channels: int,
        sample_rate: int,
    ) -> list[str]:
        normalized_codec = codec.lower()
        command = [
            self.binary,
            "-y",
            "-i",
            str(input_path),
            "-vn",
            "-ac",
            str(channels),
            "-ar",
            str(sample_rate),
        ]

        if normalized_codec in {"mp3", "mpeg"}:
            command.extend(["-acodec", "libmp3lame"])
        elif normalized_codec == "wav":
            command.extend(["-acodec", "pcm_s16le"])
        else:
            command.extend(["-acodec", normalized_codec])
        if bitrate and normalized_codec != "wav":
            command.extend(["-b:a", bitrate])

        command.append(str(output_path))
        return command

    def transcode(
        self,
        input_path: Path,
        output_path: Path,
        *,
        codec: str,
        bitrate: str,
        channels: int,
        sample_rate: int,
    ) -> None:
        command = self.build_command(
            input_path,
            output_path,
            codec=codec,
            bitrate=bitrate,
            channels=channels,
            sample_rate=sample_rate,
        )
        logger.debug("Running transcoder: %s", " ".join(command))

        try:
            subprocess.run(command, check=True, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE)
        except FileNotFoundError as exc:
            raise ExtractionFailed(f"Transcoder binary not found: {self.binary}") from exc
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", errors="replace").strip() if exc.stderr else ""
            detail = stderr.splitlines()[-1] if stderr else f"exit status {exc.returncode}"
            raise ExtractionFailed(f"Failed to extract audio with ffmpeg: {detail}") from exc


Locator = Callable[[Mapping[str, str]], Optional[str]]


def _bundled_binary(subdir: str, executable: str = "ffmpeg") -> Locator:
    def locate(environ: Mapping[str, str]) -> str | None:
        bundle_dir = environ.get(FFMPEG_BUNDLE_DIR_ENV)
        if not bundle_dir:
            return None
        candidate = Path(bundle_dir) / subdir / executable
        return str(candidate) if candidate.is_file() else None

    return locate


PLATFORM_LOCATORS: dict[tuple[str, str], Locator] = {
    ("darwin", "arm64"): _bundled_binary("darwin-arm64"),
    ("darwin", "x64"): _bundled_binary("darwin-x64"),
    ("linux", "arm64"): _bundled_binary("linux-arm64"),
    ("linux", "x64"): _bundled_binary("linux-x64"),
    ("windows", "x64"): _bundled_binary("win32-x64", "ffmpeg.exe"),
    ("windows", "arm64"): _bundled_binary("win32-x64", "ffmpeg.exe"),
}

_ARCH_ALIASES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def platform_key(system: str | None = None, machine: str | None = None) -> tuple[str, str]:
    resolved_system = (system if system is not None else platform.system()).lower()
    resolved_machine = (machine if machine is not None else platform.machine()).lower()
    return resolved_system, _ARCH_ALIASES.get(resolved_machine, resolved_machine)


def resolve_ffmpeg_binary(
    *,
    system: str | None = None,
    machine: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Pick the ffmpeg executable for this platform.

    An explicit ``MEDIA_INSIGHT_FFMPEG`` override wins. Otherwise the
    platform table is consulted for a bundled binary, and the system-installed
    ffmpeg on ``PATH`` is used when none is available.
    """

    env = os.environ if environ is None else environ

    override = env.get(FFMPEG_OVERRIDE_ENV)
    if override:
        logger.info("Using ffmpeg override: %s", override)
        return override

    key = platform_key(system, machine)
    locator = PLATFORM_LOCATORS.get(key)
    if locator is None:
        logger.warning("Unsupported platform %s/%s, trying system ffmpeg", *key)
    else:
        bundled = locator(env)
        if bundled:
            logger.info("Using platform-specific ffmpeg: %s", bundled)
            return bundled

    system_binary = which("ffmpeg")
    if system_binary:
        logger.info("Using system ffmpeg: %s", system_binary)
        return system_binary

    logger.warning("No ffmpeg binary found; relying on 'ffmpeg' being resolvable at run time")
    return "ffmpeg"


@functools.lru_cache(maxsize=1)
def default_transcoder() -> FfmpegTranscoder:
    """Return the process-wide transcoder, resolved on first use."""

    return FfmpegTranscoder(resolve_ffmpeg_binary())


def extraction_ratio(original_size: int, extracted_size: int) -> float:
    """Size of the extracted audio relative to the original upload."""

    if original_size <= 0:
        return 0.0
    return extracted_size / original_size


def extracted_file_name(file_name: str) -> str:
    stem = PurePath(file_name).stem or "audio"
    return f"{stem}.mp3"


def extract_audio_track(
    video_bytes: bytes,
    file_name: str,
    *,
    transcoder: Transcoder | None = None,
    scratch_dir: Path | str | None = None,
) -> ExtractionOutcome:
    """Extract a mono 16 kHz 64 kbps MP3 track from ``video_bytes``.

    The input and output scratch files are named with a fresh UUID so that
    concurrent calls never collide, and both are removed before this
    function returns or raises.
    """

    active_transcoder = transcoder if transcoder is not None else default_transcoder()
    base_dir = Path(scratch_dir) if scratch_dir is not None else Path(tempfile.gettempdir())

    scratch_id = uuid.uuid4().hex
    input_path = base_dir / f"{scratch_id}-input.{file_extension(file_name, 'mp4')}"
    output_path = base_dir / f"{scratch_id}-output.mp3"

    original_size = len(video_bytes)
    logger.info("Extracting audio from %s (%d bytes)", file_name, original_size)

    try:
        input_path.write_bytes(video_bytes)
        active_transcoder.transcode(
            input_path,
            output_path,
            codec=SPEECH_CODEC,
            bitrate=SPEECH_BITRATE,
            channels=SPEECH_CHANNELS,
            sample_rate=SPEECH_SAMPLE_RATE,
        )
        audio_bytes = output_path.read_bytes()
    except ExtractionFailed:
        raise
    except Exception as exc:
        raise ExtractionFailed(f"Failed to extract audio from video: {exc}") from exc
    finally:
        input_path.unlink(missing_ok=True)
        output_path.unlink(missing_ok=True)

    if not audio_bytes:
        raise ExtractionFailed("Failed to extract audio from video: transcoder produced no audio")

    ratio = extraction_ratio(original_size, len(audio_bytes))
    logger.info(
        "Audio extraction complete: %d bytes (%.0f%% size reduction)",
        len(audio_bytes),
        (1 - ratio) * 100,
    )

    return ExtractionOutcome(
        audio_bytes=audio_bytes,
        extracted=True,
        source_file_name=file_name,
        file_name=extracted_file_name(file_name),
        mime_type=EXTRACTED_MIME_TYPE,
    )
