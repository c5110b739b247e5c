import json
import math
from pathlib import Path
from typing import Any, Dict
from crfseek.domain.errors import ReportParseError
from crfseek.infrastructure.process_runner import ProcessRunner

class FFprobeAdapter:
    """Wrapper around ffprobe to read a video's duration."""

    def __init__(self, runner: ProcessRunner, ffprobe_path: str = "ffprobe"):
        self.runner = runner
        self.ffprobe_path = ffprobe_path

    @staticmethod
    def _to_float(value: Any) -> float:
        try:
            result = float(value)
        except (TypeError, ValueError):
            return 0.0
        # "nan" and "inf" parse as floats but are not durations
        return result if math.isfinite(result) else 0.0

    @staticmethod
    def _tag_seconds(value: Any) -> float:
        """DURATION tags hold plain seconds or [HH:]MM:SS.fraction."""
        parts = str(value or "").strip().split(":")
        if len(parts) > 3:
            return 0.0
        try:
            values = [float(part) for part in parts]
        except ValueError:
            return 0.0
        seconds = 0.0
        for part in values:
            seconds = seconds * 60 + part
        return seconds if math.isfinite(seconds) else 0.0

    def _build_command(self, file_path: Path):
        return [
            self.ffprobe_path,
            "-v", "error",
            "-select_streams", "v:0",
            "-print_format", "json",
            "-show_entries", "stream=duration:stream_tags=DURATION:format=duration",
            str(file_path),
        ]

    def parse_duration(self, data: Dict[str, Any], file_path: Path) -> float:
        # Fallback order: video stream duration, stream DURATION tag (mkv), container duration
        streams = data.get("streams") or []
        stream = streams[0] if streams else {}
        duration = self._to_float(stream.get("duration"))
        if duration <= 0:
            tags = stream.get("tags", {}) or {}
            duration = self._tag_seconds(tags.get("DURATION") or tags.get("duration"))
        if duration <= 0:
            duration = self._to_float((data.get("format") or {}).get("duration"))
        if duration <= 0:
            raise ReportParseError(f"ffprobe reported no duration for {file_path}")
        return duration

    def get_duration(self, file_path: Path) -> float:
        """Returns the duration of the first video stream in seconds."""
        result = self.runner.run(self._build_command(file_path), tool="ffprobe")
        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise ReportParseError(f"ffprobe returned invalid JSON for {file_path}: {exc}") from exc
        return self.parse_duration(data, file_path)
