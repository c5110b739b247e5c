from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError

from crfseek.config.models import AppConfig
from crfseek.domain.errors import ConfigurationError
from crfseek.domain.models import AggregatePolicy, FailurePolicy


@dataclass(frozen=True)
class CliConfigOverrides:
    speed: Optional[str] = None
    workers: Optional[int] = None
    crf: Optional[int] = None
    clip_length: Optional[int] = None
    clip_interval: Optional[int] = None
    crf_option: Optional[str] = None
    target: Optional[int] = None
    max_iterations: Optional[int] = None
    threads: Optional[int] = None
    log_path: Optional[str] = None
    work_dir: Optional[str] = None
    continue_on_error: bool = False
    require_split: bool = False
    search_only: bool = False
    debug: bool = False

    def apply(self, config: AppConfig) -> AppConfig:
        """Returns a re-validated copy of config with the CLI values applied."""
        data = config.model_dump()
        general = data["general"]
        search = data["search"]
        sampling = data["sampling"]

        if self.speed is not None:
            general["speed"] = self.speed
        if self.workers is not None:
            general["workers"] = self.workers
        if self.threads is not None:
            general["threads"] = self.threads
        if self.crf_option is not None:
            try:
                general["aggregate"] = AggregatePolicy.parse(self.crf_option)
            except ValueError as exc:
                raise ConfigurationError(str(exc)) from exc
        if self.log_path is not None:
            general["log_path"] = self.log_path
        if self.work_dir is not None:
            general["work_dir"] = self.work_dir
        if self.continue_on_error:
            general["failure_policy"] = FailurePolicy.CONTINUE
        if self.search_only:
            general["final_encode"] = False
        if self.debug:
            general["debug"] = True

        if self.crf is not None:
            search["starting_crf"] = self.crf
        if self.target is not None:
            search["target_score"] = self.target
        if self.max_iterations is not None:
            search["max_iterations"] = self.max_iterations

        if self.clip_length is not None:
            sampling["clip_length"] = self.clip_length
        if self.clip_interval is not None:
            sampling["clip_interval"] = self.clip_interval
        if self.require_split:
            sampling["require_split"] = True

        try:
            return AppConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid option: {exc}") from exc
