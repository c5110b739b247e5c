"""Error taxonomy for the CRF search pipeline.

Adapters raise these; the search engine lets them propagate; the orchestrator
captures them per clip and applies its failure policy; the CLI turns them into
a diagnostic and a non-zero exit code.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SearchResult


class CrfSeekError(Exception):
    """Base class for all expected failures."""

    stage = "crfseek"


class ConfigurationError(CrfSeekError):
    """Missing or malformed settings (config file, template, paths)."""

    stage = "config"


class ExternalToolError(CrfSeekError):
    """An external executable failed to launch or exited non-zero."""

    stage = "external tool"

    def __init__(self, tool: str, message: str, returncode: Optional[int] = None):
        self.tool = tool
        self.returncode = returncode
        super().__init__(f"{tool}: {message}")


class ReportParseError(CrfSeekError):
    """A tool report did not have the expected shape."""

    stage = "report parsing"


class ArtifactError(CrfSeekError):
    """Creating, reading or deleting an intermediate file failed."""

    stage = "artifact io"


class InputValidationError(CrfSeekError):
    """Requested work does not make sense for the given input."""

    stage = "validation"


class SearchTimeoutError(CrfSeekError, TimeoutError):
    """The search hit its iteration cap without an exact score match."""

    stage = "search"

    def __init__(
        self,
        clip: str,
        iterations: int,
        last_crf: int,
        last_score: Optional[int] = None,
        reason: Optional[str] = None,
    ):
        self.clip = clip
        self.iterations = iterations
        self.last_crf = last_crf
        self.last_score = last_score
        reason = reason or f"after {iterations} iterations"
        super().__init__(
            f"no exact score match for {clip} {reason} "
            f"(last crf={last_crf}, score={last_score})"
        )


class EmptyInputError(CrfSeekError):
    """Aggregation was asked to reduce zero values."""

    stage = "aggregation"


class BatchAbortedError(CrfSeekError):
    """A clip search failed and the batch was aborted."""

    stage = "orchestration"

    def __init__(self, results: List["SearchResult"], first_failure: "SearchResult"):
        self.results = results
        self.first_failure = first_failure
        super().__init__(
            f"search failed for clip {first_failure.clip.path}: {first_failure.error_message}"
        )
