"""Domain events for the CRF search pipeline.

Events flow through the EventBus so the search engine and orchestrator never
talk to the console directly. See `infrastructure/event_bus.py`.
"""

from typing import List, Optional
from pathlib import Path
from pydantic import BaseModel
from .models import Clip, ScoreSample, SearchResult


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class ClipsSampled(Event):
    """Emitted after the sampler produced the clip list."""

    source: Path
    clips: List[Clip]
    split: bool = True


class ClipEvent(Event):
    """Base class for events about one clip's search."""

    clip: Clip


class ClipSearchStarted(ClipEvent):
    starting_crf: int
    worker_tag: str


class ClipIterationScored(ClipEvent):
    """Emitted after each encode + score round."""

    sample: ScoreSample


class ClipSearchFinished(ClipEvent):
    crf: int
    iterations: int


class ClipSearchFailed(ClipEvent):
    error_message: str


class BatchFinished(Event):
    """Emitted once every clip result is in (input order)."""

    results: List[SearchResult]
    pool_size: int


class AggregateComputed(Event):
    values: List[int]
    policy: str
    final_crf: int
    minimum: int
    average: int


class FinalEncodeStarted(Event):
    source: Path
    output: Path
    crf: int


class FinalEncodeFinished(Event):
    output: Path
    crf: int
    elapsed_seconds: Optional[float] = None
