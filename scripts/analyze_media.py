import argparse
import json
import logging
import os
import sys
from pathlib import Path
from urllib.parse import unquote, urlparse

from media_insight import (
	HttpStorage,
	LocalDirectoryStorage,
	MediaAnalysisRequest,
	MediaInsightError,
	MediaReference,
	SqliteSegmentStore,
	TranscriptAnalyzer,
	WhisperTranscriptionClient,
	analysis_to_text,
	analyze_media,
	default_transcoder,
)
from media_insight.media import (
	is_analyzable_media,
	mime_type_for,
	supported_audio_extensions,
	supported_video_extensions,
)


def parse_args() -> argparse.Namespace:
	parser = argparse.ArgumentParser(description="Transcribe a video or audio file and extract marketing insight.")
	parser.add_argument("media", help="Path to the input media file or a media URL")
	parser.add_argument(
		"--file-type",
		dest="file_type",
		help="MIME type of the media (guessed from the file name when omitted)",
	)
	parser.add_argument("--context", help="Additional context about the media passed to the analysis model")
	parser.add_argument(
		"--asset-id",
		dest="asset_id",
		help="Asset ID; when set, timestamped segments are saved for deep search",
	)
	parser.add_argument(
		"--segment-db",
		dest="segment_db",
		help="SQLite database for transcript segments (defaults to MEDIA_INSIGHT_SEGMENT_DB or ~/.cache)",
	)
	parser.add_argument(
		"--search",
		help="After processing, print the stored segments of --asset-id that contain this text",
	)
	parser.add_argument("--language", default="en", help="Language code passed to transcription")
	parser.add_argument(
		"--transcription-model",
		dest="transcription_model",
		default="whisper-1",
		help="Model used by the transcription endpoint",
	)
	parser.add_argument(
		"--analysis-model",
		dest="analysis_model",
		default="gpt-4o-2024-08-06",
		help="Model used for structured transcript analysis",
	)
	parser.add_argument(
		"--base-url",
		dest="base_url",
		help="OpenAI-compatible API base URL (defaults to OPENAI_BASE_URL or the OpenAI API)",
	)
	parser.add_argument(
		"--scratch-dir",
		dest="scratch_dir",
		help="Directory for temporary extraction files (defaults to the system temp dir)",
	)
	parser.add_argument(
		"--as-text",
		dest="as_text",
		action="store_true",
		help="Print the analysis as plain text instead of JSON",
	)
	parser.add_argument("-v", "--verbose", action="store_true", help="Log pipeline progress")
	parser.add_argument("--debug", action="store_true", help="Log debug details, including transcoder commands")
	return parser.parse_args()


def is_url(value: str) -> bool:
	parsed = urlparse(value)
	return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def file_name_from_input(media_input: str) -> str:
	if is_url(media_input):
		parsed = urlparse(media_input)
		return Path(unquote(parsed.path)).name or parsed.netloc
	return Path(media_input).name


def configure_logging(verbose: bool, debug: bool) -> None:
	level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
	logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def main() -> None:
	args = parse_args()
	configure_logging(args.verbose, args.debug)

	media_input = args.media
	file_name = file_name_from_input(media_input)
	file_type = args.file_type or mime_type_for(file_name)
	if not is_analyzable_media(file_type):
		supported = ", ".join(supported_video_extensions() + supported_audio_extensions())
		raise SystemExit(f"Unsupported media type {file_type!r} (supported: {supported}); pass --file-type to override")

	if is_url(media_input):
		storage = HttpStorage()
		key = media_input
		size_hint = None
	else:
		media_path = Path(media_input)
		if not media_path.exists():
			raise FileNotFoundError(f"Media file does not exist: {media_path}")
		storage = LocalDirectoryStorage(media_path.parent)
		key = media_path.name
		size_hint = os.path.getsize(media_path)

	segment_store = SqliteSegmentStore(args.segment_db) if args.asset_id else None

	reference = MediaReference(location_key=key, file_name=file_name, file_type=file_type, size_bytes=size_hint)
	request = MediaAnalysisRequest.from_reference(reference, additional_context=args.context, asset_id=args.asset_id)

	try:
		result = analyze_media(
			request,
			storage=storage,
			transcription_client=WhisperTranscriptionClient(
				base_url=args.base_url,
				model=args.transcription_model,
				language=args.language,
			),
			analyzer=TranscriptAnalyzer(base_url=args.base_url, model=args.analysis_model),
			transcoder=default_transcoder(),
			segment_store=segment_store,
			scratch_dir=args.scratch_dir,
		)
	except MediaInsightError as exc:
		print(f"[{exc.kind.value}] {exc.user_message()}", file=sys.stderr)
		sys.exit(1)

	if args.as_text:
		print(analysis_to_text(result))
	else:
		print(json.dumps(result.to_payload(), indent=2, ensure_ascii=False))

	if args.search and segment_store is not None:
		for segment in segment_store.search_segments(args.asset_id, args.search):
			print(f"{segment.start_seconds:8.2f}-{segment.end_seconds:8.2f}  {segment.text}")


if __name__ == "__main__":
	main()
