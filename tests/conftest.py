import threading
import time
import pytest
import yaml
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple
from crfseek.config.models import AppConfig
from crfseek.infrastructure.event_bus import EventBus
from crfseek.infrastructure.housekeeping import HousekeepingService
from crfseek.domain.errors import ExternalToolError

TEMPLATE = '-i INPUT -o OUTPUT --encoder aom -w WORKER_NUM --video-params "--cq-level=CRF --cpu-used=SPEED"'

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config(tmp_path):
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        encoding_settings=TEMPLATE,
        paths={
            "av1an": "av1an",
            "ssimulacra2": "ssimulacra2",
            "ffmpeg": "ffmpeg",
            "ffprobe": "ffprobe",
        },
        general={
            "speed": "6",
            "workers": 2,
            "threads": 8,
            "aggregate": "smallest",
            "work_dir": str(tmp_path / "work"),
            "debug": False,
        },
        search={
            "starting_crf": 45,
            "target_score": 90,
            "max_iterations": 40,
        },
        sampling={
            "clip_length": 20,
            "clip_interval": 360,
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "crfseek.yaml"

    content = {
        'paths': {
            'av1an': '/opt/av1an',
            'ssimulacra2': '/usr/bin/ssimulacra2',
            'ffmpeg': 'ffmpeg',
            'ffprobe': 'ffprobe',
        },
        'encoding_settings': TEMPLATE,
        'general': {
            'speed': 4,
            'workers': 3,
            'aggregate': 'average',
        },
        'search': {
            'starting_crf': 40,
            'max_iterations': 25,
        },
        'sampling': {
            'clip_length': 10,
            'clip_interval': 120,
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def housekeeping(tmp_path):
    service = HousekeepingService(tmp_path / "work")
    service.prepare()
    return service

# ============================================================================
# Fake collaborators
# ============================================================================

class FakeEncoder:
    """Writes the CRF into the artifact (plus an index sidecar) instead of encoding."""

    def __init__(self, fail_on: Optional[Callable[[Path, int], bool]] = None):
        self.calls: List[Tuple[Path, int, Path]] = []
        self.fail_on = fail_on
        self._lock = threading.Lock()

    def encode(self, clip_path, crf, output_path, show_output=False):
        with self._lock:
            self.calls.append((Path(clip_path), crf, Path(output_path)))
        if self.fail_on and self.fail_on(Path(clip_path), crf):
            raise ExternalToolError("av1an", "exited with code 1", returncode=1)
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(str(crf))
        Path(str(output_path) + ".lwi").write_text("index")


class FakeScorer:
    """Scores an artifact with score_fn(clip_path, crf); optional per-clip delay (by file name)."""

    def __init__(self, score_fn: Callable[[Path, int], int], delays: Optional[Dict[str, float]] = None):
        self.score_fn = score_fn
        self.delays = delays or {}
        self.calls: List[Tuple[Path, Path, int, str]] = []
        self._lock = threading.Lock()

    def score(self, original, encoded, workers, tag):
        with self._lock:
            self.calls.append((Path(original), Path(encoded), workers, tag))
        delay = self.delays.get(Path(original).name)
        if delay:
            time.sleep(delay)
        crf = int(Path(encoded).read_text())
        return self.score_fn(Path(original), crf)
