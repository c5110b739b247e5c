import logging
from pathlib import Path
from typing import List, Optional
from crfseek.domain.errors import ArtifactError, ReportParseError
from crfseek.infrastructure.process_runner import ProcessRunner


def parse_score(report: str, line_label: Optional[str] = None) -> int:
    """Extracts the integer score from an ssimulacra2 video report.

    The score line is the last non-empty line of the report, or the last line
    containing `line_label` when one is given. Its value sits after the first
    colon; only the integer part (up to the decimal point) is kept.

    >>> parse_score("Mean: 88.1\\n95th percentile: 90.412\\n")
    90
    """
    lines = [line.strip() for line in report.splitlines() if line.strip()]
    if line_label is not None:
        lines = [line for line in lines if line_label in line]
    if not lines:
        label = f" containing {line_label!r}" if line_label else ""
        raise ReportParseError(f"score report has no line{label}")

    line = lines[-1]
    _, colon, value = line.partition(":")
    tokens = value.split()
    if not colon or not tokens:
        raise ReportParseError(f"no value after ':' in score line {line!r}")

    integer_part = tokens[0].split(".", 1)[0]
    try:
        return int(integer_part)
    except ValueError as exc:
        raise ReportParseError(f"score {tokens[0]!r} is not a number in line {line!r}") from exc


class Ssim2Scorer:
    """Runs `ssimulacra2 video` and reads the score from its saved report."""

    def __init__(
        self,
        runner: ProcessRunner,
        reports_dir: Path,
        ssim2_path: str = "ssimulacra2",
        wrapper: Optional[List[str]] = None,
        line_label: Optional[str] = None,
    ):
        self.runner = runner
        self.reports_dir = Path(reports_dir)
        self.ssim2_path = ssim2_path
        self.wrapper = list(wrapper or [])
        self.line_label = line_label
        self.logger = logging.getLogger(__name__)

    def _build_command(self, original: Path, encoded: Path, workers: int) -> List[str]:
        return [*self.wrapper, self.ssim2_path, "video", "-f", str(workers), str(original), str(encoded)]

    def report_path(self, tag: str) -> Path:
        return self.reports_dir / f"ssim2_output_{tag}.txt"

    def run_report(self, original: Path, encoded: Path, workers: int, tag: str) -> str:
        """Runs the scorer and returns its text report."""
        report_file = self.report_path(tag)
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        self.runner.run(self._build_command(original, encoded, workers), stdout_path=report_file, tool="ssimulacra2")
        try:
            return report_file.read_text(errors="replace")
        except OSError as exc:
            raise ArtifactError(f"Cannot read score report {report_file}: {exc}") from exc

    def score(self, original: Path, encoded: Path, workers: int, tag: str) -> int:
        report = self.run_report(original, encoded, workers, tag)
        try:
            return parse_score(report, self.line_label)
        except ReportParseError as exc:
            raise ReportParseError(f"{self.report_path(tag)}: {exc}") from exc
