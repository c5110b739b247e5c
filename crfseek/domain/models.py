import re
from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class AggregatePolicy(str, Enum):
    MINIMUM = "minimum"
    AVERAGE = "average"

    @classmethod
    def parse(cls, value: "str | AggregatePolicy") -> "AggregatePolicy":
        """Accepts enum values plus the aliases used on the command line."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        aliases = {
            "minimum": cls.MINIMUM,
            "min": cls.MINIMUM,
            "smallest": cls.MINIMUM,
            "lowest": cls.MINIMUM,
            "average": cls.AVERAGE,
            "avg": cls.AVERAGE,
            "mean": cls.AVERAGE,
        }
        if key not in aliases:
            raise ValueError(f"Unknown aggregate policy: {value}. Use 'smallest' or 'average'.")
        return aliases[key]


class FailurePolicy(str, Enum):
    ABORT = "abort"
    CONTINUE = "continue"


class SearchStatus(str, Enum):
    FOUND = "FOUND"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"  # Never started (batch aborted before dispatch)


class Clip(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    index: int = 0
    start_seconds: Optional[int] = None
    duration_seconds: Optional[int] = None

    @property
    def tag(self) -> str:
        """Filesystem-safe name used for this clip's intermediates."""
        stem = _UNSAFE_CHARS.sub("_", self.path.stem) or "clip"
        return f"{stem}-{self.index}"


class SearchState(BaseModel):
    """Position of one clip's search; a new state is produced every iteration."""

    model_config = ConfigDict(frozen=True)

    crf: int
    seen_above: bool = False
    seen_below: bool = False
    iteration: int = 0

    @property
    def bracketed(self) -> bool:
        return self.seen_above and self.seen_below

    def step_for(self, score: int, target: int, coarse_step: int = 5, fine_step: int = 1) -> int:
        """Signed CRF change for a score that missed the target."""
        if score < target:
            return -(fine_step if self.seen_above else coarse_step)
        return fine_step if self.seen_below else coarse_step

    def advance(self, score: int, target: int, coarse_step: int = 5, fine_step: int = 1) -> "SearchState":
        if score == target:
            return self
        step = self.step_for(score, target, coarse_step, fine_step)
        if score < target:
            # Below only counts once the target was seen from above
            seen_below = self.seen_below or self.seen_above
            seen_above = self.seen_above
        else:
            seen_above = True
            seen_below = self.seen_below
        return SearchState(
            crf=self.crf + step,
            seen_above=seen_above,
            seen_below=seen_below,
            iteration=self.iteration + 1,
        )


class ScoreSample(BaseModel):
    crf: int
    score: int
    step: int = 0
    iteration: int = 0


class SearchResult(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    clip: Clip
    status: SearchStatus
    crf: Optional[int] = None
    iterations: int = 0
    error_message: Optional[str] = None
    error: Optional[Exception] = Field(default=None, exclude=True, repr=False)
    elapsed_seconds: Optional[float] = None

    @property
    def found(self) -> bool:
        return self.status == SearchStatus.FOUND
