import pytest
from pathlib import Path
from unittest.mock import MagicMock

from crfseek.domain.errors import ExternalToolError
from crfseek.infrastructure.clip_sampler import ClipSampler


def make_sampler(tmp_path, duration):
    runner = MagicMock()
    ffprobe = MagicMock()
    ffprobe.get_duration.return_value = duration
    sampler = ClipSampler(runner, ffprobe, tmp_path / "clips", ffmpeg_path="/usr/bin/ffmpeg")
    return sampler, runner


def test_clip_starts_and_names(tmp_path):
    sampler, runner = make_sampler(tmp_path, 800.7)

    clips = sampler.sample(Path("movie.mkv"), clip_length=20, interval=360)

    # 0, 380, 760 (< 800)
    assert [c.start_seconds for c in clips] == [0, 380, 760]
    assert [c.path.name for c in clips] == ["0-20-0.mkv", "380-400-1.mkv", "760-780-2.mkv"]
    assert [c.index for c in clips] == [0, 1, 2]
    assert runner.run.call_count == 3


def test_ffmpeg_command(tmp_path):
    sampler, runner = make_sampler(tmp_path, 30)

    sampler.sample(Path("movie.mkv"), clip_length=20, interval=360)

    cmd = runner.run.call_args[0][0]
    assert cmd == [
        "/usr/bin/ffmpeg", "-y", "-v", "error",
        "-ss", "0", "-i", "movie.mkv",
        "-c", "copy", "-t", "20",
        str(tmp_path / "clips" / "0-20-0.mkv"),
    ]
    assert runner.run.call_args[1]["tool"] == "ffmpeg"


def test_short_video_is_not_split(tmp_path):
    sampler, runner = make_sampler(tmp_path, 12.9)
    video = Path("short.mkv")

    clips = sampler.sample(video, clip_length=20, interval=360)

    assert len(clips) == 1
    assert clips[0].path == video
    assert clips[0].duration_seconds == 12
    assert ClipSampler.is_unsplit(clips, video)
    runner.run.assert_not_called()


def test_video_exactly_one_clip_long_is_split(tmp_path):
    sampler, runner = make_sampler(tmp_path, 20)
    clips = sampler.sample(Path("movie.mkv"), clip_length=20, interval=0)
    assert [c.path.name for c in clips] == ["0-20-0.mkv"]
    assert not ClipSampler.is_unsplit(clips, Path("movie.mkv"))


def test_zero_interval_back_to_back(tmp_path):
    sampler, _ = make_sampler(tmp_path, 45)
    clips = sampler.sample(Path("movie.mkv"), clip_length=20, interval=0)
    assert [c.start_seconds for c in clips] == [0, 20, 40]


def test_ffmpeg_failure_propagates(tmp_path):
    sampler, runner = make_sampler(tmp_path, 100)
    runner.run.side_effect = ExternalToolError("ffmpeg", "exited with code 1", returncode=1)
    with pytest.raises(ExternalToolError):
        sampler.sample(Path("movie.mkv"), clip_length=20, interval=10)


def test_known_length_skips_ffprobe(tmp_path):
    sampler, runner = make_sampler(tmp_path, 800)

    clips = sampler.sample(Path("movie.mkv"), clip_length=20, interval=360, video_length=400)

    sampler.ffprobe.get_duration.assert_not_called()
    assert [c.start_seconds for c in clips] == [0, 380]
    assert runner.run.call_count == 2
