import typer
from pathlib import Path
from typing import Optional

from crfseek.config.loader import find_config, load_config
from crfseek.config.overrides import CliConfigOverrides
from crfseek.domain.errors import BatchAbortedError, CrfSeekError
from crfseek.infrastructure.event_bus import EventBus
from crfseek.infrastructure.logging import setup_logging
from crfseek.pipeline.session import SearchSession
from crfseek.ui.console import ConsoleReporter

app = typer.Typer(help="crfseek - find the CRF that makes a video's SSIMULACRA2 score hit the target, then encode")

@app.command()
def search(
    input_file: Path = typer.Option(..., "--input", "-i", help="File to encode"),
    output_file: Path = typer.Option(..., "--output", "-o", help="Encoded file destination"),
    speed: Optional[str] = typer.Option(None, "--speed", "-s", help="Encoder speed preset (SPEED placeholder)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Encoder/scorer workers per job (WORKER_NUM)"),
    crf: Optional[int] = typer.Option(None, "--crf", "-c", help="Starting CRF (default 45)"),
    clip_length: Optional[int] = typer.Option(None, "--clip-length", "-l", help="Clip length in seconds (default 20)"),
    clip_interval: Optional[int] = typer.Option(None, "--clip-interval", "-n", help="Seconds between clips (default 360)"),
    crf_option: Optional[str] = typer.Option(None, "--crf-option", "-u", help="CRF used for the output video: smallest or average"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to YAML/JSON config (default conf/crfseek.yaml, then paths.json)"),
    target: Optional[int] = typer.Option(None, "--target", help="Target score (default 90)"),
    max_iterations: Optional[int] = typer.Option(None, "--max-iterations", help="Give up on a clip after this many encodes"),
    threads: Optional[int] = typer.Option(None, "--threads", "-t", help="Override hardware thread count used to size the pool"),
    continue_on_error: bool = typer.Option(False, "--continue-on-error", help="Keep searching other clips when one fails"),
    require_split: bool = typer.Option(False, "--require-split", help="Fail instead of searching the whole video when it is shorter than a clip"),
    search_only: bool = typer.Option(False, "--search-only", help="Only find the CRF, skip the final encode"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Path to log file (overrides config)"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Find the CRF for --input on sampled clips, then encode it to --output."""
    reporter = None
    try:
        config = load_config(find_config(config_path))
        overrides = CliConfigOverrides(
            speed=speed,
            workers=workers,
            crf=crf,
            clip_length=clip_length,
            clip_interval=clip_interval,
            crf_option=crf_option,
            target=target,
            max_iterations=max_iterations,
            threads=threads,
            log_path=str(log_path) if log_path is not None else None,
            continue_on_error=continue_on_error,
            require_split=require_split,
            search_only=search_only,
            debug=debug,
        )
        config = overrides.apply(config)

        if not input_file.is_file():
            typer.secho(f"Error: Input file does not exist: {input_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

        log_path_value = Path(config.general.log_path) if config.general.log_path else None
        logger = setup_logging(Path(config.general.work_dir), debug=config.general.debug, log_path=log_path_value)
        logger.info(f"crfseek started: input={input_file}, output={output_file}")
        logger.info(
            f"Config: speed={config.general.speed}, workers={config.general.workers}, "
            f"crf={config.search.starting_crf}, target={config.search.target_score}, "
            f"clip={config.sampling.clip_length}s/{config.sampling.clip_interval}s, "
            f"aggregate={config.general.aggregate.value}, failure_policy={config.general.failure_policy.value}"
        )

        bus = EventBus()
        reporter = ConsoleReporter(bus)
        session = SearchSession(config, bus)
        logger.info(f"Thread pool: {session.pool_size} concurrent clip searches")

        report = session.run(input_file, output_file)
        reporter.render_summary(report)

    except KeyboardInterrupt:
        typer.secho("\n✓ Search stopped by user (Ctrl+C)", fg=typer.colors.YELLOW)
        raise typer.Exit(code=130)

    except typer.Exit:
        raise

    except BatchAbortedError as e:
        if reporter:
            reporter.render_results("CRF search aborted", e.results)
        failed = e.first_failure
        typer.secho(
            f"Error [{failed.clip.path.name}]: {failed.error_message}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    except CrfSeekError as e:
        typer.secho(f"Error [{e.stage}]: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    except Exception as e:
        with open("error.log", "a") as f:
            import traceback
            traceback.print_exc(file=f)
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

if __name__ == "__main__":
    app()
