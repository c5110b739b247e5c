import shutil
from pathlib import Path
from crfseek.domain.errors import ArtifactError

SIDECAR_SUFFIXES = (".lwi",)

class HousekeepingService:
    """Owns the work directory layout and cleanup of intermediates."""

    def __init__(self, work_dir: Path):
        self.work_dir = Path(work_dir)

    @property
    def clips_dir(self) -> Path:
        return self.work_dir / "clips"

    @property
    def encoded_dir(self) -> Path:
        return self.work_dir / "clips_encoded"

    @property
    def reports_dir(self) -> Path:
        return self.work_dir / "ssim2"

    def prepare(self):
        """Drops intermediates of a previous run and recreates the layout."""
        for directory in (self.clips_dir, self.encoded_dir, self.reports_dir):
            try:
                if directory.exists():
                    shutil.rmtree(directory)
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise ArtifactError(f"Cannot reset work directory {directory}: {exc}") from exc

    def remove_artifact(self, path: Path):
        """Removes an encoded artifact and any index sidecar the encoder left next to it."""
        path = Path(path)
        candidates = [path] + [path.with_name(path.name + suffix) for suffix in SIDECAR_SUFFIXES]
        for candidate in candidates:
            try:
                candidate.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise ArtifactError(f"Cannot delete {candidate}: {exc}") from exc
