import io
import pytest
from pathlib import Path
from rich.console import Console

from crfseek.domain.events import (
    AggregateComputed,
    ClipIterationScored,
    ClipSearchFailed,
    ClipSearchFinished,
    ClipsSampled,
    FinalEncodeFinished,
)
from crfseek.domain.models import Clip, ScoreSample, SearchResult, SearchStatus
from crfseek.infrastructure.event_bus import EventBus
from crfseek.pipeline.session import SessionReport
from crfseek.ui.console import ConsoleReporter


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def bus():
    return EventBus()


def make_reporter(bus, output, verbose=True):
    return ConsoleReporter(bus, console=Console(file=output, width=120, color_system=None), verbose=verbose)


def test_progress_events_are_printed(bus, output):
    make_reporter(bus, output)
    clip = Clip(path=Path("0-20-0.mkv"))

    bus.publish(ClipIterationScored(clip=clip, sample=ScoreSample(crf=40, score=82, step=-5, iteration=2)))
    bus.publish(ClipSearchFinished(clip=clip, crf=31, iterations=9))

    text = output.getvalue()
    assert "0-20-0.mkv: iter 2 crf 40" in text
    assert "score 82 (step -5)" in text
    assert "crf 31 after 9 iterations" in text


def test_quiet_mode_hides_iterations(bus, output):
    make_reporter(bus, output, verbose=False)
    clip = Clip(path=Path("0-20-0.mkv"))

    bus.publish(ClipIterationScored(clip=clip, sample=ScoreSample(crf=40, score=82)))

    assert output.getvalue() == ""


def test_failure_text_is_not_markup(bus, output):
    make_reporter(bus, output)
    clip = Clip(path=Path("[bold].mkv"))

    bus.publish(ClipSearchFailed(clip=clip, error_message="external tool: av1an: [red]exited[/red]"))

    assert "[bold].mkv" in output.getvalue()
    assert "[red]exited[/red]" in output.getvalue()


def test_sampling_message(bus, output):
    make_reporter(bus, output)
    source = Path("movie.mkv")

    bus.publish(ClipsSampled(source=source, clips=[Clip(path=Path("a.mkv")), Clip(path=Path("b.mkv"), index=1)]))
    bus.publish(ClipsSampled(source=source, clips=[Clip(path=source)], split=False))

    text = output.getvalue()
    assert "Created 2 clips from movie.mkv" in text
    assert "shorter than one clip" in text


def test_aggregate_and_final_encode(bus, output):
    make_reporter(bus, output)

    bus.publish(AggregateComputed(values=[30, 32, 31], policy="average", final_crf=31, minimum=30, average=31))
    bus.publish(FinalEncodeFinished(output=Path("out.mkv"), crf=31, elapsed_seconds=100.0))

    text = output.getvalue()
    assert "min 30 | average 31" in text
    assert "using 31 (average)" in text
    assert "Finished encoding: out.mkv" in text


def test_render_summary_table(bus, output):
    reporter = make_reporter(bus, output)
    results = [
        SearchResult(clip=Clip(path=Path("0-20-0.mkv"), index=0), status=SearchStatus.FOUND,
                     crf=30, iterations=4, elapsed_seconds=61.2),
        SearchResult(clip=Clip(path=Path("380-400-1.mkv"), index=1), status=SearchStatus.SKIPPED),
    ]
    report = SessionReport(
        source=Path("movie.mkv"), results=results, values=[30], policy="minimum",
        final_crf=30, minimum=30, average=30, search_seconds=75.0,
    )

    reporter.render_summary(report)

    text = output.getvalue()
    assert "CRF search: movie.mkv" in text
    assert "380-400-1.mkv" in text
    assert "SKIPPED" in text
    assert "61s" in text
    assert "min_crf: 30 | average_crf: 30 | final (minimum): 30 | search time: 75s" in text
