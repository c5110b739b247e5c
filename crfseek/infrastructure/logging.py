import logging
from pathlib import Path
from typing import Optional

def setup_logging(work_dir: Path, debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging configuration for crfseek.

    Creates the work directory and crfseek.log file.
    Returns configured logger instance.

    Args:
        work_dir: Directory holding clips, encodes and scorer reports
        debug: If True, enable DEBUG level logging (full command lines)
        log_path: Optional path to log file (overrides work_dir)
    """
    work_dir = Path(work_dir)
    work_dir.mkdir(parents=True, exist_ok=True)

    log_file = Path(log_path) if log_path else (work_dir / "crfseek.log")
    log_file.parent.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(threadName)s - %(message)s',
        handlers=[logging.FileHandler(log_file)],
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized: {log_file} (debug={'ON' if debug else 'OFF'})")

    return logger
