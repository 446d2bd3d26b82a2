from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest
from pydub.generators import Sine

from media_insight.audio import FfmpegTranscoder, extract_audio_track
from media_insight.errors import ExtractionFailed


class RecordingTranscoder:
    """Writes a fixed payload to the output path and records the call."""

    def __init__(self, payload: bytes = b"mp3-bytes") -> None:
        self.payload = payload
        self.calls: list[dict] = []

    def transcode(self, input_path: Path, output_path: Path, **options) -> None:
        self.calls.append(
            {
                "input_path": input_path,
                "output_path": output_path,
                "input_existed": input_path.exists(),
                "input_bytes": input_path.read_bytes(),
                **options,
            }
        )
        output_path.write_bytes(self.payload)


class ExplodingTranscoder:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.paths: list[tuple[Path, Path]] = []

    def transcode(self, input_path: Path, output_path: Path, **_options) -> None:
        self.paths.append((input_path, output_path))
        # leave a partial output behind to check it is removed as well
        output_path.write_bytes(b"partial")
        raise self.exc


def test_ffmpeg_transcoder_invokes_ffmpeg(tmp_path: Path) -> None:
    transcoder = FfmpegTranscoder("ffmpeg")
    with patch("media_insight.audio.subprocess.run") as mock_run:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
        transcoder.transcode(
            tmp_path / "in.mp4",
            tmp_path / "out.mp3",
            codec="mp3",
            bitrate="64k",
            channels=1,
            sample_rate=16000,
        )

    mock_run.assert_called_once()
    called_args = mock_run.call_args[0][0]
    assert called_args[0] == "ffmpeg"
    assert "-vn" in called_args
    assert called_args[called_args.index("-ac") + 1] == "1"
    assert called_args[called_args.index("-ar") + 1] == "16000"
    assert called_args[called_args.index("-acodec") + 1] == "libmp3lame"
    assert called_args[called_args.index("-b:a") + 1] == "64k"
    assert called_args[-1] == str(tmp_path / "out.mp3")


def test_ffmpeg_transcoder_wraps_process_errors(tmp_path: Path) -> None:
    transcoder = FfmpegTranscoder("/opt/ffmpeg/bin/ffmpeg")
    error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr=b"header\nInvalid data found when processing input\n")
    with patch("media_insight.audio.subprocess.run", side_effect=error):
        with pytest.raises(ExtractionFailed, match="Invalid data found"):
            transcoder.transcode(
                tmp_path / "in.mp4",
                tmp_path / "out.mp3",
                codec="mp3",
                bitrate="64k",
                channels=1,
                sample_rate=16000,
            )


def test_ffmpeg_transcoder_reports_missing_binary(tmp_path: Path) -> None:
    transcoder = FfmpegTranscoder("/does/not/exist/ffmpeg")
    with patch("media_insight.audio.subprocess.run", side_effect=FileNotFoundError("nope")):
        with pytest.raises(ExtractionFailed, match="not found"):
            transcoder.transcode(
                tmp_path / "in.mp4",
                tmp_path / "out.mp3",
                codec="mp3",
                bitrate="64k",
                channels=1,
                sample_rate=16000,
            )


def test_extract_audio_track_returns_mp3_and_cleans_up(tmp_path: Path) -> None:
    transcoder = RecordingTranscoder(payload=b"x" * 300)

    outcome = extract_audio_track(b"v" * 1000, "Talk Recording.MOV", transcoder=transcoder, scratch_dir=tmp_path)

    assert outcome.audio_bytes == b"x" * 300
    assert outcome.extracted is True
    assert outcome.source_file_name == "Talk Recording.MOV"
    assert outcome.file_name == "Talk Recording.mp3"
    assert outcome.mime_type == "audio/mpeg"

    call = transcoder.calls[0]
    assert call["input_existed"] is True
    assert call["input_bytes"] == b"v" * 1000
    assert call["input_path"].name.endswith("-input.mov")
    assert call["output_path"].name.endswith("-output.mp3")
    assert call["codec"] == "mp3"
    assert call["bitrate"] == "64k"
    assert call["channels"] == 1
    assert call["sample_rate"] == 16000

    assert list(tmp_path.iterdir()) == []


def test_extract_audio_track_uses_unique_scratch_names(tmp_path: Path) -> None:
    transcoder = RecordingTranscoder()

    extract_audio_track(b"a", "clip.mp4", transcoder=transcoder, scratch_dir=tmp_path)
    extract_audio_track(b"b", "clip.mp4", transcoder=transcoder, scratch_dir=tmp_path)

    first, second = transcoder.calls
    assert first["input_path"] != second["input_path"]
    assert first["output_path"] != second["output_path"]


def test_extract_audio_track_never_leaks_scratch_files(tmp_path: Path) -> None:
    for _ in range(5):
        transcoder = ExplodingTranscoder(RuntimeError("encoder crashed"))
        with pytest.raises(ExtractionFailed, match="encoder crashed"):
            extract_audio_track(b"video", "clip.mp4", transcoder=transcoder, scratch_dir=tmp_path)
        input_path, output_path = transcoder.paths[0]
        assert not input_path.exists()
        assert not output_path.exists()

    assert list(tmp_path.iterdir()) == []


def test_extract_audio_track_keeps_extraction_errors_unwrapped(tmp_path: Path) -> None:
    original = ExtractionFailed("Failed to extract audio with ffmpeg: exit status 1")
    transcoder = ExplodingTranscoder(original)

    with pytest.raises(ExtractionFailed) as excinfo:
        extract_audio_track(b"video", "clip.mp4", transcoder=transcoder, scratch_dir=tmp_path)

    assert excinfo.value is original
    assert list(tmp_path.iterdir()) == []


def test_extract_audio_track_rejects_empty_output(tmp_path: Path) -> None:
    with pytest.raises(ExtractionFailed, match="no audio"):
        extract_audio_track(b"video", "clip.mp4", transcoder=RecordingTranscoder(b""), scratch_dir=tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_extract_audio_track_handles_real_audio_payload(tmp_path: Path) -> None:
    source = tmp_path / "tone.wav"
    Sine(440).to_audio_segment(duration=500).export(source, format="wav")
    payload = source.read_bytes()
    scratch = tmp_path / "scratch"
    scratch.mkdir()

    class CopyingTranscoder:
        def transcode(self, input_path: Path, output_path: Path, **_options) -> None:
            output_path.write_bytes(input_path.read_bytes()[: len(payload) // 4])

    outcome = extract_audio_track(payload, "tone.wav", transcoder=CopyingTranscoder(), scratch_dir=scratch)

    assert len(outcome.audio_bytes) == len(payload) // 4
    assert list(scratch.iterdir()) == []


def test_resolve_prefers_explicit_override(tmp_path: Path) -> None:
    from media_insight.audio import resolve_ffmpeg_binary

    binary = resolve_ffmpeg_binary(
        system="Linux",
        machine="x86_64",
        environ={"MEDIA_INSIGHT_FFMPEG": "/custom/ffmpeg"},
    )
    assert binary == "/custom/ffmpeg"


@pytest.mark.parametrize(
    ("system", "machine", "subdir", "executable"),
    [
        ("Darwin", "arm64", "darwin-arm64", "ffmpeg"),
        ("Darwin", "x86_64", "darwin-x64", "ffmpeg"),
        ("Linux", "aarch64", "linux-arm64", "ffmpeg"),
        ("Linux", "x86_64", "linux-x64", "ffmpeg"),
        ("Windows", "AMD64", "win32-x64", "ffmpeg.exe"),
    ],
)
def test_resolve_uses_platform_bundle(tmp_path: Path, system: str, machine: str, subdir: str, executable: str) -> None:
    from media_insight.audio import resolve_ffmpeg_binary

    bundled = tmp_path / subdir / executable
    bundled.parent.mkdir(parents=True)
    bundled.write_bytes(b"")

    binary = resolve_ffmpeg_binary(
        system=system,
        machine=machine,
        environ={"MEDIA_INSIGHT_FFMPEG_DIR": str(tmp_path)},
    )
    assert binary == str(bundled)


def test_resolve_falls_back_to_system_binary(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    from media_insight.audio import resolve_ffmpeg_binary

    monkeypatch.setattr("media_insight.audio.which", lambda name: f"/usr/bin/{name}")

    # bundle directory exists but holds no binary for this platform
    assert (
        resolve_ffmpeg_binary(system="Linux", machine="x86_64", environ={"MEDIA_INSIGHT_FFMPEG_DIR": str(tmp_path)})
        == "/usr/bin/ffmpeg"
    )
    # unknown platforms go straight to the system binary
    assert resolve_ffmpeg_binary(system="FreeBSD", machine="riscv64", environ={}) == "/usr/bin/ffmpeg"


def test_resolve_defaults_to_plain_name_when_nothing_found(monkeypatch: pytest.MonkeyPatch) -> None:
    from media_insight.audio import resolve_ffmpeg_binary

    monkeypatch.setattr("media_insight.audio.which", lambda name: None)
    assert resolve_ffmpeg_binary(system="Linux", machine="x86_64", environ={}) == "ffmpeg"


def test_default_transcoder_is_resolved_once(monkeypatch: pytest.MonkeyPatch) -> None:
    from media_insight import audio

    calls: list[int] = []

    def fake_resolve() -> str:
        calls.append(1)
        return "/resolved/ffmpeg"

    monkeypatch.setattr(audio, "resolve_ffmpeg_binary", fake_resolve)
    audio.default_transcoder.cache_clear()
    try:
        first = audio.default_transcoder()
        second = audio.default_transcoder()
    finally:
        audio.default_transcoder.cache_clear()

    assert first is second
    assert first.binary == "/resolved/ffmpeg"
    assert len(calls) == 1


def test_extraction_ratio() -> None:
    from media_insight.audio import extraction_ratio

    assert extraction_ratio(1000, 250) == 0.25
    assert extraction_ratio(0, 10) == 0.0
