"""Runs one CRF search per sampled clip on a bounded thread pool.

Key responsibilities:
- Size the pool from the hardware thread count and the per-job worker count
- Give every search a unique tag so intermediates never share a path
- Return results in input order, whatever order the searches finish in
- Apply the failure policy: abort (stop dispatching, drain in-flight, raise)
  or continue (keep going, report failures in the results)
"""

import os
import time
import logging
import concurrent.futures
from typing import List, Optional, Sequence, Tuple

from crfseek.domain.errors import BatchAbortedError, CrfSeekError, InputValidationError
from crfseek.domain.events import BatchFinished, ClipSearchFailed, ClipSearchFinished, ClipSearchStarted
from crfseek.domain.models import Clip, FailurePolicy, SearchResult, SearchStatus
from crfseek.infrastructure.event_bus import EventBus
from crfseek.pipeline.search import QualitySearchEngine


def compute_pool_size(total_threads: Optional[int], workers_per_job: int) -> int:
    """max(1, total_threads // workers_per_job); total_threads defaults to os.cpu_count()."""
    if workers_per_job < 1:
        raise InputValidationError(f"workers per job must be >= 1, got {workers_per_job}")
    if total_threads is None:
        total_threads = os.cpu_count() or 1
    return max(1, total_threads // workers_per_job)


class ClipOrchestrator:
    """Fans clips out to concurrent QualitySearchEngine runs.

    Each pool slot runs exactly one clip's search to completion. The worker
    count given to `run` is the encoder/scorer's own parallelism; it only
    shrinks the pool here.

    Args:
        engine: Shared search engine (stateless between searches).
        event_bus: Receives per-clip start/finish/failure events.
        failure_policy: ABORT (default) or CONTINUE.
        total_threads: Hardware threads to budget for; None = os.cpu_count().
    """

    def __init__(
        self,
        engine: QualitySearchEngine,
        event_bus: EventBus,
        failure_policy: FailurePolicy = FailurePolicy.ABORT,
        total_threads: Optional[int] = None,
    ):
        self.engine = engine
        self.event_bus = event_bus
        self.failure_policy = failure_policy
        self.total_threads = total_threads
        self.logger = logging.getLogger(__name__)

    def _run_one(self, clip: Clip, starting_crf: int, target: int, tag: str) -> SearchResult:
        start_time = time.monotonic()
        self.logger.info(f"CLIP_START: {clip.path.name} (tag={tag}, crf={starting_crf})")
        self.event_bus.publish(ClipSearchStarted(clip=clip, starting_crf=starting_crf, worker_tag=tag))

        try:
            crf, iterations = self.engine.search_detailed(clip, starting_crf, target, tag)
        except CrfSeekError as e:
            elapsed = time.monotonic() - start_time
            err_msg = f"{e.stage}: {e}"
            self.logger.error(f"CLIP_FAILED: {clip.path.name} ({err_msg}) elapsed={elapsed:.2f}s")
            self.event_bus.publish(ClipSearchFailed(clip=clip, error_message=err_msg))
            return SearchResult(
                clip=clip,
                status=SearchStatus.FAILED,
                error=e,
                error_message=err_msg,
                iterations=getattr(e, "iterations", 0),
                elapsed_seconds=elapsed,
            )

        elapsed = time.monotonic() - start_time
        self.logger.info(f"CLIP_END: {clip.path.name} crf={crf} iterations={iterations} elapsed={elapsed:.2f}s")
        self.event_bus.publish(ClipSearchFinished(clip=clip, crf=crf, iterations=iterations))
        return SearchResult(
            clip=clip,
            status=SearchStatus.FOUND,
            crf=crf,
            iterations=iterations,
            elapsed_seconds=elapsed,
        )

    @staticmethod
    def _cancel_queued(futures) -> int:
        return sum(1 for future in futures if future.cancel())

    def _run_pool(
        self, clips: List[Clip], starting_crf: int, target: int, pool_size: int
    ) -> Tuple[List[SearchResult], Optional[SearchResult]]:
        """Returns results in input order plus the first failure in completion order."""
        results: List[Optional[SearchResult]] = [None] * len(clips)
        first_failure: Optional[SearchResult] = None

        with concurrent.futures.ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="clip") as executor:
            futures = {
                executor.submit(self._run_one, clip, starting_crf, target, f"w{index}"): index
                for index, clip in enumerate(clips)
            }
            try:
                for future in concurrent.futures.as_completed(futures):
                    if future.cancelled():
                        continue
                    index = futures[future]
                    result = future.result()
                    results[index] = result

                    if result.found or first_failure is not None:
                        continue
                    first_failure = result
                    if self.failure_policy == FailurePolicy.ABORT:
                        cancelled = self._cancel_queued(futures)
                        self.logger.info(
                            f"Batch abort: {clips[index].path.name} failed, "
                            f"{cancelled} queued clips cancelled, waiting for in-flight searches"
                        )
            except KeyboardInterrupt:
                self.logger.info("Ctrl+C detected - cancelling queued clip searches...")
                self._cancel_queued(futures)
                raise
            except Exception as e:
                cancelled = self._cancel_queued(futures)
                self.logger.error(
                    f"Batch abort: unexpected {type(e).__name__}: {e}, "
                    f"{cancelled} queued clips cancelled, waiting for in-flight searches"
                )
                raise

        ordered = [
            result if result is not None else SearchResult(
                clip=clip, status=SearchStatus.SKIPPED, error_message="not started (batch aborted)"
            )
            for clip, result in zip(clips, results)
        ]
        return ordered, first_failure

    def run(
        self,
        clips: Sequence[Clip],
        starting_crf: int,
        target: int,
        workers_per_job: int,
    ) -> List[SearchResult]:
        """Searches every clip; results come back in the order of `clips`."""
        clips = list(clips)
        pool_size = compute_pool_size(self.total_threads, workers_per_job)
        if not clips:
            self.logger.info("No clips to search")
            return []

        if len(clips) == 1:
            # Single clip (or unsplit source): no pool, search on this thread
            results = [self._run_one(clips[0], starting_crf, target, "w0")]
            first_failure = None if results[0].found else results[0]
        else:
            pool_size = min(pool_size, len(clips))
            self.logger.info(f"Searching {len(clips)} clips on {pool_size} threads (workers/job={workers_per_job})")
            results, first_failure = self._run_pool(clips, starting_crf, target, pool_size)

        self.event_bus.publish(BatchFinished(results=results, pool_size=pool_size))

        if first_failure is not None and self.failure_policy == FailurePolicy.ABORT:
            raise BatchAbortedError(results, first_failure)
        return results
