import threading
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from crfseek.domain.events import (
    AggregateComputed,
    ClipIterationScored,
    ClipSearchFailed,
    ClipSearchFinished,
    ClipSearchStarted,
    ClipsSampled,
    FinalEncodeFinished,
    FinalEncodeStarted,
)
from crfseek.domain.models import SearchResult, SearchStatus
from crfseek.infrastructure.event_bus import EventBus
from crfseek.pipeline.session import SessionReport

_STATUS_STYLE = {
    SearchStatus.FOUND: "green",
    SearchStatus.FAILED: "red",
    SearchStatus.SKIPPED: "yellow",
}


class ConsoleReporter:
    """Subscribes to EventBus and prints search progress with rich."""

    def __init__(self, bus: EventBus, console: Optional[Console] = None, verbose: bool = True):
        self.bus = bus
        self.console = console or Console()
        self.verbose = verbose
        self._lock = threading.Lock()
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(ClipsSampled, self.on_clips_sampled)
        self.bus.subscribe(ClipSearchStarted, self.on_clip_started)
        self.bus.subscribe(ClipIterationScored, self.on_iteration)
        self.bus.subscribe(ClipSearchFinished, self.on_clip_finished)
        self.bus.subscribe(ClipSearchFailed, self.on_clip_failed)
        self.bus.subscribe(AggregateComputed, self.on_aggregate)
        self.bus.subscribe(FinalEncodeStarted, self.on_final_started)
        self.bus.subscribe(FinalEncodeFinished, self.on_final_finished)

    def _print(self, *args, **kwargs):
        with self._lock:
            self.console.print(*args, **kwargs)

    def on_clips_sampled(self, event: ClipsSampled):
        if event.split:
            self._print(f"Created {len(event.clips)} clips from [bold]{escape(event.source.name)}[/bold]")
        else:
            self._print(
                f"[yellow]{event.source.name} is shorter than one clip; searching the whole video[/yellow]"
            )

    def on_clip_started(self, event: ClipSearchStarted):
        if self.verbose:
            self._print(f"[dim]{event.clip.path.name}: start at crf {event.starting_crf}[/dim]")

    def on_iteration(self, event: ClipIterationScored):
        if not self.verbose:
            return
        sample = event.sample
        self._print(
            f"  {event.clip.path.name}: iter {sample.iteration} crf {sample.crf} "
            f"→ score {sample.score}" + (f" (step {sample.step:+d})" if sample.step else "")
        )

    def on_clip_finished(self, event: ClipSearchFinished):
        self._print(
            f"[green]✓[/green] {event.clip.path.name}: crf {event.crf} "
            f"after {event.iterations} iteration{'s' if event.iterations != 1 else ''}"
        )

    def on_clip_failed(self, event: ClipSearchFailed):
        self._print(f"[red]✗[/red] {escape(event.clip.path.name)}: {escape(event.error_message)}")

    def on_aggregate(self, event: AggregateComputed):
        self._print(
            f"CRFs {event.values} | min {event.minimum} | average {event.average} "
            f"→ using [bold]{event.final_crf}[/bold] ({event.policy})"
        )

    def on_final_started(self, event: FinalEncodeStarted):
        self._print(f"Encoding [bold]{escape(event.source.name)}[/bold] at crf {event.crf} → {event.output}")

    def on_final_finished(self, event: FinalEncodeFinished):
        self._print(f"[green]Finished encoding:[/green] {event.output}")

    def render_results(self, title: str, results: List[SearchResult]):
        table = Table(title=title)
        table.add_column("#", justify="right")
        table.add_column("Clip")
        table.add_column("Status")
        table.add_column("CRF", justify="right")
        table.add_column("Iterations", justify="right")
        table.add_column("Time", justify="right")

        for result in results:
            style = _STATUS_STYLE.get(result.status, "")
            elapsed = f"{result.elapsed_seconds:.0f}s" if result.elapsed_seconds is not None else "-"
            table.add_row(
                str(result.clip.index),
                escape(result.clip.path.name),
                f"[{style}]{result.status.value}[/{style}]" if style else result.status.value,
                str(result.crf) if result.crf is not None else "-",
                str(result.iterations),
                elapsed,
            )

        self._print(table)

    def render_summary(self, report: SessionReport):
        self.render_results(f"CRF search: {report.source.name}", report.results)
        self._print(
            f"min_crf: {report.minimum} | average_crf: {report.average} | "
            f"final ({report.policy}): [bold]{report.final_crf}[/bold] | "
            f"search time: {report.search_seconds:.0f}s"
        )
