import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import ValidationError
from crfseek.domain.errors import ConfigurationError
from .models import AppConfig

DEFAULT_CONFIG_PATHS = (Path("conf/crfseek.yaml"), Path("paths.json"))

# Flat layout of the old paths.json: {"av1an": ..., "ssim2": ..., "arch": ..., ...}
_LEGACY_PATH_KEYS = {
    "av1an": "av1an",
    "ssim2": "ssimulacra2",
    "ffmpeg": "ffmpeg",
    "ffprobe": "ffprobe",
}


def _normalize_legacy(data: Dict[str, Any]) -> Dict[str, Any]:
    if "paths" in data or not any(key in data for key in _LEGACY_PATH_KEYS):
        return data

    normalized = dict(data)
    paths: Dict[str, Any] = {}
    for legacy_key, key in _LEGACY_PATH_KEYS.items():
        if legacy_key in normalized:
            paths[key] = normalized.pop(legacy_key)
    arch = normalized.pop("arch", None)
    if arch:
        paths["wrapper"] = [arch, "runp"]
    normalized["paths"] = paths
    return normalized


def find_config(config_path: Optional[Path] = None) -> Path:
    """Returns the explicit path, else the first default location that exists."""
    if config_path is not None:
        return Path(config_path)
    for candidate in DEFAULT_CONFIG_PATHS:
        if candidate.exists():
            return candidate
    searched = ", ".join(str(p) for p in DEFAULT_CONFIG_PATHS)
    raise ConfigurationError(f"No config file found (looked for {searched})")


def load_config(config_path: Path) -> AppConfig:
    """Loads a YAML (or JSON) config and parses it into the AppConfig model."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{config_path} is formatted incorrectly: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")

    try:
        return AppConfig(**_normalize_legacy(data))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config {config_path}: {exc}") from exc
