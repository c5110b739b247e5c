"""End-to-end CRF search session.

prepare work dir → sample clips → search each clip → aggregate → final encode.
"""

import time
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from crfseek.config.models import AppConfig
from crfseek.domain.errors import InputValidationError
from crfseek.domain.events import AggregateComputed, ClipsSampled, FinalEncodeFinished, FinalEncodeStarted
from crfseek.domain.models import SearchResult
from crfseek.infrastructure.clip_sampler import ClipSampler
from crfseek.infrastructure.encoder import Av1anEncoder
from crfseek.infrastructure.event_bus import EventBus
from crfseek.infrastructure.ffprobe import FFprobeAdapter
from crfseek.infrastructure.housekeeping import HousekeepingService
from crfseek.infrastructure.process_runner import ProcessRunner
from crfseek.infrastructure.scorer import Ssim2Scorer
from crfseek.pipeline.aggregate import aggregate, found_values, summarize
from crfseek.pipeline.orchestrator import ClipOrchestrator, compute_pool_size
from crfseek.pipeline.search import QualitySearchEngine


class SessionReport(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    source: Path
    output: Optional[Path] = None
    split: bool = True
    results: List[SearchResult]
    values: List[int]
    policy: str
    final_crf: int
    minimum: int
    average: int
    search_seconds: float
    encoded: bool = False


class SearchSession:
    """Wires the adapters to the search core for one source video.

    Any collaborator can be injected (tests pass fakes); the rest are built
    from the config.
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        runner: Optional[ProcessRunner] = None,
        housekeeping: Optional[HousekeepingService] = None,
        sampler: Optional[ClipSampler] = None,
        encoder: Optional[Av1anEncoder] = None,
        scorer: Optional[Ssim2Scorer] = None,
    ):
        self.config = config
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

        paths = config.paths
        general = config.general
        self.runner = runner or ProcessRunner()
        self.housekeeping = housekeeping or HousekeepingService(Path(general.work_dir))
        self.sampler = sampler or ClipSampler(
            self.runner,
            FFprobeAdapter(self.runner, paths.ffprobe),
            self.housekeeping.clips_dir,
            ffmpeg_path=paths.ffmpeg,
        )
        self.encoder = encoder or Av1anEncoder(
            self.runner,
            config.encoding_settings,
            speed=general.speed,
            workers=general.workers,
            av1an_path=paths.av1an,
        )
        self.scorer = scorer or Ssim2Scorer(
            self.runner,
            self.housekeeping.reports_dir,
            ssim2_path=paths.ssimulacra2,
            wrapper=paths.wrapper,
            line_label=config.scorer.line_label,
        )
        self.engine = QualitySearchEngine(
            self.encoder,
            self.scorer,
            self.housekeeping,
            config=config.search,
            event_bus=event_bus,
            workers=general.workers,
        )
        self.orchestrator = ClipOrchestrator(
            self.engine,
            event_bus,
            failure_policy=general.failure_policy,
            total_threads=general.threads,
        )

    @property
    def pool_size(self) -> int:
        return compute_pool_size(self.config.general.threads, self.config.general.workers)

    def _validate_split(self, input_file: Path, video_length: int):
        clip_length = self.config.sampling.clip_length
        if video_length <= clip_length:
            raise InputValidationError(
                f"clip length {clip_length}s is not shorter than the video ({video_length}s): {input_file}"
            )

    def search(self, input_file: Path) -> SessionReport:
        """Finds the CRF for input_file without running the final encode."""
        input_file = Path(input_file)
        sampling = self.config.sampling
        search = self.config.search
        start_time = time.monotonic()

        self.housekeeping.prepare()
        video_length = None
        if sampling.require_split:
            video_length = self.sampler.probe_length(input_file)
            self._validate_split(input_file, video_length)

        clips = self.sampler.sample(
            input_file, sampling.clip_length, sampling.clip_interval, video_length=video_length
        )
        split = not ClipSampler.is_unsplit(clips, input_file)
        if not split:
            self.logger.info(f"Video shorter than clip length, searching whole file: {input_file.name}")
        self.event_bus.publish(ClipsSampled(source=input_file, clips=clips, split=split))

        results = self.orchestrator.run(
            clips,
            search.starting_crf,
            search.target_score,
            self.config.general.workers,
        )

        policy = self.config.general.aggregate
        final_crf = aggregate(results, policy)
        summary = summarize(results)
        values = found_values(results)
        elapsed = time.monotonic() - start_time

        self.logger.info(
            f"Aggregate: values={values} min={summary['minimum']} average={summary['average']} "
            f"policy={policy.value} final={final_crf} TIME_ELAPSED={elapsed:.0f}s"
        )
        self.event_bus.publish(AggregateComputed(
            values=values,
            policy=policy.value,
            final_crf=final_crf,
            minimum=summary["minimum"],
            average=summary["average"],
        ))

        return SessionReport(
            source=input_file,
            split=split,
            results=results,
            values=values,
            policy=policy.value,
            final_crf=final_crf,
            minimum=summary["minimum"],
            average=summary["average"],
            search_seconds=elapsed,
        )

    def encode_final(self, input_file: Path, output_file: Path, crf: int) -> float:
        """Full-length encode at the chosen CRF, with the encoder's own output visible."""
        input_file = Path(input_file)
        output_file = Path(output_file)
        self.event_bus.publish(FinalEncodeStarted(source=input_file, output=output_file, crf=crf))
        self.logger.info(f"FINAL_START: {input_file} -> {output_file} (crf={crf})")
        start_time = time.monotonic()
        self.encoder.encode(input_file, crf, output_file, show_output=True)
        elapsed = time.monotonic() - start_time
        self.logger.info(f"FINAL_END: {output_file} elapsed={elapsed:.2f}s")
        self.event_bus.publish(FinalEncodeFinished(output=output_file, crf=crf, elapsed_seconds=elapsed))
        return elapsed

    def run(self, input_file: Path, output_file: Path) -> SessionReport:
        report = self.search(input_file)
        report.output = Path(output_file)
        if self.config.general.final_encode:
            self.encode_final(input_file, output_file, report.final_crf)
            report.encoded = True
        return report
