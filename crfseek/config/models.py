from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from crfseek.domain.models import AggregatePolicy, FailurePolicy

PLACEHOLDER_TOKENS = ("INPUT", "OUTPUT", "SPEED", "CRF", "WORKER_NUM")
REQUIRED_TOKENS = ("INPUT", "OUTPUT", "CRF")


class PathsConfig(BaseModel):
    """Executables used by the external collaborators."""
    av1an: str = "av1an"
    ssimulacra2: str = "ssimulacra2"
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    # Optional argv prefix for the scorer (e.g. a WSL distro launcher + "runp")
    wrapper: List[str] = Field(default_factory=list)


class SearchConfig(BaseModel):
    starting_crf: int = Field(default=45, ge=0, le=255)
    target_score: int = Field(default=90, ge=0, le=100)
    coarse_step: int = Field(default=5, gt=0)
    fine_step: int = Field(default=1, gt=0)
    max_iterations: int = Field(default=40, ge=1)
    min_crf: int = Field(default=1, ge=0)
    max_crf: int = Field(default=63, ge=0, le=255)

    @model_validator(mode="after")
    def validate_bounds(self):
        if self.min_crf > self.max_crf:
            raise ValueError("min_crf must be <= max_crf")
        if self.fine_step > self.coarse_step:
            raise ValueError("fine_step must be <= coarse_step")
        if not (self.min_crf <= self.starting_crf <= self.max_crf):
            raise ValueError(
                f"starting_crf {self.starting_crf} must be between {self.min_crf} and {self.max_crf}"
            )
        return self


class SamplingConfig(BaseModel):
    clip_length: int = Field(default=20, gt=0)  # seconds
    clip_interval: int = Field(default=360, ge=0)  # seconds between clip starts, after the clip
    require_split: bool = False


class ScorerConfig(BaseModel):
    # Which report line carries the score; None means the last non-empty line.
    line_label: Optional[str] = None


class GeneralConfig(BaseModel):
    speed: str = "6"
    workers: int = Field(default=1, gt=0)
    threads: Optional[int] = Field(default=None, gt=0)  # None = os.cpu_count()
    aggregate: AggregatePolicy = AggregatePolicy.MINIMUM
    failure_policy: FailurePolicy = FailurePolicy.ABORT
    work_dir: str = "output_helper"
    log_path: Optional[str] = None
    final_encode: bool = True
    debug: bool = False

    @field_validator("aggregate", mode="before")
    @classmethod
    def parse_aggregate(cls, v):
        return AggregatePolicy.parse(v)

    @field_validator("speed", mode="before")
    @classmethod
    def speed_to_str(cls, v):
        return str(v)


class AppConfig(BaseModel):
    encoding_settings: str
    paths: PathsConfig = Field(default_factory=PathsConfig)
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    scorer: ScorerConfig = Field(default_factory=ScorerConfig)

    @field_validator("encoding_settings")
    @classmethod
    def validate_template(cls, v: str) -> str:
        missing = [token for token in REQUIRED_TOKENS if token not in v]
        if missing:
            raise ValueError(f"encoding_settings is missing placeholder(s): {', '.join(missing)}")
        return v
