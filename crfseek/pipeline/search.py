"""Adaptive CRF search for a single clip.

Each iteration encodes the clip at the current CRF, scores the encode against
the clip and moves the CRF towards the target score:

- score below target: the encode is too lossy, lower the CRF;
- score above target: there is room left, raise the CRF;
- exact match: done.

Steps are coarse until the target has been seen from both sides (first from
above, then from below), after which they collapse to the fine step. The loop
is bounded by `max_iterations` and by the configured CRF range.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

from crfseek.config.models import SearchConfig
from crfseek.domain.errors import ArtifactError, SearchTimeoutError
from crfseek.domain.events import ClipIterationScored
from crfseek.domain.models import Clip, ScoreSample, SearchState
from crfseek.infrastructure.encoder import Av1anEncoder
from crfseek.infrastructure.event_bus import EventBus
from crfseek.infrastructure.housekeeping import HousekeepingService
from crfseek.infrastructure.scorer import Ssim2Scorer


class QualitySearchEngine:
    """Finds the CRF at which a clip scores exactly the target.

    The engine holds no per-search state, so one instance can serve every
    worker of the orchestrator's pool. Concurrent searches stay apart through
    the `tag` each one passes in, which names its artifact and report.

    Args:
        encoder: Encode executor (av1an adapter or a test fake).
        scorer: Quality scorer (ssimulacra2 adapter or a test fake).
        housekeeping: Provides the artifact directory and artifact cleanup.
        config: Step sizes, iteration cap and CRF bounds.
        event_bus: Optional bus for per-iteration events.
        workers: Parallelism hint handed to the scorer.
    """

    def __init__(
        self,
        encoder: Av1anEncoder,
        scorer: Ssim2Scorer,
        housekeeping: HousekeepingService,
        config: Optional[SearchConfig] = None,
        event_bus: Optional[EventBus] = None,
        workers: int = 1,
    ):
        self.encoder = encoder
        self.scorer = scorer
        self.housekeeping = housekeeping
        self.config = config or SearchConfig()
        self.event_bus = event_bus
        self.workers = workers
        self.logger = logging.getLogger(__name__)

    def _clamp(self, crf: int) -> int:
        return max(self.config.min_crf, min(self.config.max_crf, crf))

    def artifact_path(self, clip: Clip, tag: str) -> Path:
        return self.housekeeping.encoded_dir / f"{clip.tag}_{tag}.mkv"

    def search(self, clip: Clip, starting_crf: Optional[int] = None, target: Optional[int] = None, tag: str = "w0") -> int:
        crf, _ = self.search_detailed(clip, starting_crf, target, tag)
        return crf

    def search_detailed(
        self,
        clip: Clip,
        starting_crf: Optional[int] = None,
        target: Optional[int] = None,
        tag: str = "w0",
    ) -> Tuple[int, int]:
        """Runs the search; returns (crf, iterations used)."""
        starting_crf = self.config.starting_crf if starting_crf is None else starting_crf
        target = self.config.target_score if target is None else target
        state = SearchState(crf=self._clamp(starting_crf))
        artifact = self.artifact_path(clip, tag)
        report_tag = f"{clip.tag}_{tag}"
        last_score: Optional[int] = None
        last_crf = state.crf
        name = clip.path.name

        try:
            while state.iteration < self.config.max_iterations:
                self.encoder.encode(clip.path, state.crf, artifact)
                score = self.scorer.score(clip.path, artifact, self.workers, report_tag)
                last_score = score
                last_crf = state.crf

                step = 0
                if score != target:
                    step = state.step_for(score, target, self.config.coarse_step, self.config.fine_step)
                sample = ScoreSample(crf=state.crf, score=score, step=step, iteration=state.iteration + 1)
                self.logger.info(
                    f"SEARCH_ITER: {name} iter={sample.iteration} crf={state.crf} "
                    f"score={score} target={target} step={step:+d} bracketed={state.bracketed}"
                )
                if self.event_bus:
                    self.event_bus.publish(ClipIterationScored(clip=clip, sample=sample))

                self.housekeeping.remove_artifact(artifact)

                if score == target:
                    return state.crf, sample.iteration

                next_state = state.advance(score, target, self.config.coarse_step, self.config.fine_step)
                clamped = self._clamp(next_state.crf)
                if clamped == state.crf:
                    raise SearchTimeoutError(
                        name,
                        sample.iteration,
                        state.crf,
                        score,
                        reason=f"within crf range {self.config.min_crf}..{self.config.max_crf}",
                    )
                state = next_state.model_copy(update={"crf": clamped})

            raise SearchTimeoutError(name, state.iteration, last_crf, last_score)
        finally:
            try:
                self.housekeeping.remove_artifact(artifact)
            except ArtifactError as exc:
                self.logger.warning(f"SEARCH_CLEANUP: {exc}")
