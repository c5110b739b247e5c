import logging
import re
import shlex
import time
from pathlib import Path
from typing import List, Union
from crfseek.domain.errors import ConfigurationError
from crfseek.infrastructure.process_runner import ProcessRunner

_TOKEN_RE = re.compile(r"WORKER_NUM|INPUT|OUTPUT|SPEED|CRF")


def format_settings(
    template: str,
    input_file: Union[str, Path],
    speed: str,
    crf: Union[int, str],
    worker_num: Union[int, str],
    output_file: Union[str, Path],
) -> str:
    """Substitutes the placeholder tokens of an encoder settings template.

    Paths are wrapped in double quotes. Substitution is a single pass, so text
    inside a substituted path is never itself treated as a token.
    """
    values = {
        "INPUT": f'"{input_file}"',
        "OUTPUT": f'"{output_file}"',
        "SPEED": str(speed),
        "CRF": str(crf),
        "WORKER_NUM": str(worker_num),
    }
    return _TOKEN_RE.sub(lambda match: values[match.group(0)], template)


class Av1anEncoder:
    """Runs av1an with a user supplied settings template."""

    def __init__(self, runner: ProcessRunner, template: str, speed: str, workers: int, av1an_path: str = "av1an"):
        self.runner = runner
        self.template = template
        self.speed = speed
        self.workers = workers
        self.av1an_path = av1an_path
        self.logger = logging.getLogger(__name__)

    def _build_command(self, input_file: Path, crf: int, output_file: Path) -> List[str]:
        settings = format_settings(self.template, input_file, self.speed, crf, self.workers, output_file)
        try:
            args = shlex.split(settings)
        except ValueError as exc:
            raise ConfigurationError(f"encoding_settings cannot be tokenized: {exc}") from exc
        return [self.av1an_path, *args]

    def encode(self, clip_path: Path, crf: int, output_path: Path, show_output: bool = False):
        """Encodes clip_path at crf into output_path; raises ExternalToolError on failure."""
        cmd = self._build_command(clip_path, crf, output_path)
        self.logger.debug(f"AV1AN_CMD: {' '.join(cmd)}")
        start_time = time.monotonic()
        self.runner.run(cmd, capture_output=not show_output, tool="av1an")
        self.logger.debug(
            f"AV1AN_END: {Path(clip_path).name} crf={crf} elapsed={time.monotonic() - start_time:.2f}s"
        )
