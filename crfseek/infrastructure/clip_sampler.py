import logging
from pathlib import Path
from typing import List, Optional
from crfseek.domain.models import Clip
from crfseek.infrastructure.ffprobe import FFprobeAdapter
from crfseek.infrastructure.process_runner import ProcessRunner


class ClipSampler:
    """Cuts evenly spaced clips out of a source video with ffmpeg stream copy.

    Clips start at 0 and every `clip_length + interval` seconds after that.
    When the video is shorter than one clip, the returned list holds a single
    clip pointing at the source itself: search on the whole video, do not split.
    """

    def __init__(self, runner: ProcessRunner, ffprobe: FFprobeAdapter, clips_dir: Path, ffmpeg_path: str = "ffmpeg"):
        self.runner = runner
        self.ffprobe = ffprobe
        self.clips_dir = Path(clips_dir)
        self.ffmpeg_path = ffmpeg_path
        self.logger = logging.getLogger(__name__)

    def probe_length(self, video: Path) -> int:
        """Whole seconds of video; the fractional part is dropped."""
        return int(self.ffprobe.get_duration(video))

    @staticmethod
    def clip_name(start: int, clip_length: int, index: int) -> str:
        return f"{start}-{start + clip_length}-{index}.mkv"

    def _build_command(self, video: Path, start: int, clip_length: int, output: Path) -> List[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-v", "error",
            "-ss", str(start),
            "-i", str(video),
            "-c", "copy",
            "-t", str(clip_length),
            str(output),
        ]

    def sample(
        self, video: Path, clip_length: int, interval: int, video_length: Optional[int] = None
    ) -> List[Clip]:
        """Cuts clips from video; video_length skips the ffprobe call when the caller already has it."""
        video = Path(video)
        if video_length is None:
            video_length = self.probe_length(video)

        if video_length < clip_length:
            self.logger.info(
                f"SAMPLE_SKIP: {video.name} is {video_length}s, shorter than clip length {clip_length}s"
            )
            return [Clip(path=video, index=0, start_seconds=0, duration_seconds=video_length)]

        self.clips_dir.mkdir(parents=True, exist_ok=True)
        clips: List[Clip] = []
        start = 0
        index = 0
        while start < video_length:
            output = self.clips_dir / self.clip_name(start, clip_length, index)
            self.runner.run(self._build_command(video, start, clip_length, output), tool="ffmpeg")
            clips.append(Clip(path=output, index=index, start_seconds=start, duration_seconds=clip_length))
            start += clip_length + interval
            index += 1

        self.logger.info(f"SAMPLE_DONE: {video.name} -> {len(clips)} clips ({video_length}s source)")
        return clips

    @staticmethod
    def is_unsplit(clips: List[Clip], video: Path) -> bool:
        """True when the sampler returned the source itself instead of clips."""
        return len(clips) == 1 and Path(clips[0].path) == Path(video)
