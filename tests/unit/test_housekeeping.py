import pytest
from pathlib import Path
from unittest.mock import patch

from crfseek.domain.errors import ArtifactError
from crfseek.infrastructure.housekeeping import HousekeepingService


def test_prepare_creates_layout(tmp_path):
    service = HousekeepingService(tmp_path / "work")
    service.prepare()

    assert service.clips_dir == tmp_path / "work" / "clips"
    assert service.encoded_dir == tmp_path / "work" / "clips_encoded"
    assert service.reports_dir == tmp_path / "work" / "ssim2"
    for directory in (service.clips_dir, service.encoded_dir, service.reports_dir):
        assert directory.is_dir()


def test_prepare_drops_previous_intermediates(tmp_path):
    service = HousekeepingService(tmp_path / "work")
    service.prepare()
    (service.clips_dir / "0-20-0.mkv").write_text("old")
    (service.encoded_dir / "old_w0.mkv").write_text("old")
    (service.reports_dir / "ssim2_output_old.txt").write_text("old")
    log_file = service.work_dir / "crfseek.log"
    log_file.write_text("keep me")

    service.prepare()

    assert list(service.clips_dir.iterdir()) == []
    assert list(service.encoded_dir.iterdir()) == []
    assert list(service.reports_dir.iterdir()) == []
    assert log_file.read_text() == "keep me"


def test_prepare_failure_is_artifact_error(tmp_path):
    service = HousekeepingService(tmp_path / "work")
    with patch("crfseek.infrastructure.housekeeping.Path.mkdir", side_effect=PermissionError("denied")):
        with pytest.raises(ArtifactError, match="denied"):
            service.prepare()


def test_remove_artifact_and_sidecar(tmp_path):
    service = HousekeepingService(tmp_path)
    artifact = tmp_path / "clip-0_w0.mkv"
    sidecar = tmp_path / "clip-0_w0.mkv.lwi"
    artifact.write_text("x")
    sidecar.write_text("index")

    service.remove_artifact(artifact)

    assert not artifact.exists()
    assert not sidecar.exists()


def test_remove_missing_artifact_is_noop(tmp_path):
    HousekeepingService(tmp_path).remove_artifact(tmp_path / "never-created.mkv")


def test_remove_artifact_failure(tmp_path):
    service = HousekeepingService(tmp_path)
    artifact = tmp_path / "clip.mkv"
    artifact.write_text("x")
    with patch.object(Path, "unlink", side_effect=PermissionError("busy")):
        with pytest.raises(ArtifactError, match="busy"):
            service.remove_artifact(artifact)
