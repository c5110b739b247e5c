import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence
from crfseek.domain.errors import ArtifactError, ExternalToolError


@dataclass
class ProcessResult:
    cmd: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""


def _tail(text: Optional[str], lines: int = 5) -> str:
    if not text:
        return ""
    return " | ".join(text.strip().splitlines()[-lines:])


class ProcessRunner:
    """Runs external executables from an argument vector (no shell, no script files)."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def run(
        self,
        cmd: Sequence[str],
        capture_output: bool = True,
        stdout_path: Optional[Path] = None,
        tool: Optional[str] = None,
        check: bool = True,
    ) -> ProcessResult:
        """Executes cmd and waits for it.

        capture_output=False inherits the parent's stdout/stderr so the tool's own
        progress stays visible. stdout_path redirects stdout into a file instead.
        """
        cmd = [str(part) for part in cmd]
        tool = tool or Path(cmd[0]).name
        self.logger.debug(f"RUN: {' '.join(cmd)}")

        try:
            if stdout_path is not None:
                try:
                    out_file = open(stdout_path, "w")
                except OSError as exc:
                    raise ArtifactError(f"Cannot create report file {stdout_path}: {exc}") from exc
                with out_file:
                    completed = subprocess.run(
                        cmd, stdout=out_file, stderr=subprocess.PIPE, text=True, errors="replace"
                    )
            elif capture_output:
                completed = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
            else:
                completed = subprocess.run(cmd)
        except OSError as exc:
            raise ExternalToolError(tool, f"cannot start ({exc})") from exc

        result = ProcessResult(
            cmd=cmd,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

        if check and result.returncode != 0:
            detail = _tail(result.stderr)
            message = f"exited with code {result.returncode}"
            if detail:
                message = f"{message}: {detail}"
            raise ExternalToolError(tool, message, returncode=result.returncode)
        return result
