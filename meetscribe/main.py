"""Main application entry point for MeetScribe."""

import sys
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.table import Table

from .config import MeetScribeConfig
from .estimation.estimator import format_duration
from .export.exporters import EXPORT_FORMATS
from .services.app_context import AppContext

logger = logging.getLogger(__name__)

console = Console()

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
STATUS_POLL_SECONDS = 0.5


def setup_logging(config: MeetScribeConfig, level: str = "INFO") -> None:
    """Set up logging configuration from settings."""
    log_file_path = config.get_log_file_path()
    console_output = config.get('console_output', True)

    # Create logs directory if it doesn't exist
    Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    ))
    handlers.append(file_handler)

    # Console handler - only warnings and above, the CLI prints its own output
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("MeetScribe starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def _check(result: Dict[str, Any]) -> Dict[str, Any]:
    """Print a failed service result and exit non-zero."""
    if not result.get("success"):
        console.print(f"[bold red]❌ {result.get('error_type', 'Error')}:[/] {result.get('error')}")
        sys.exit(1)
    return result


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Path to settings YAML file (default: per-user settings)")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None,
              help="Set logging level (default: from settings)")
@click.version_option("0.1.0", prog_name="MeetScribe")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str]) -> None:
    """MeetScribe - record meetings and transcribe them."""
    config = MeetScribeConfig(config_path)
    setup_logging(config, log_level or config.get('log_level', 'INFO'))
    app = AppContext(config)
    ctx.obj = app
    ctx.call_on_close(app.dispose)


@cli.command()
@click.pass_obj
def devices(app: AppContext) -> None:
    """List audio input devices."""
    result = _check(app.recording_service.list_devices())
    table = Table(title="🎤 Audio Devices", show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Role")
    for device in result["devices"]:
        table.add_row(device["id"], device["display_name"], device["role"])
    console.print(table)


@cli.command()
@click.option("--duration", type=int, default=None, help="Stop automatically after N seconds")
@click.option("--device", "device_id", default=None, help="Device id, or 'mixed'")
@click.option("--format", "audio_format", default=None, help="Output format (wav, flac, mp3, ogg, opus, m4a)")
@click.option("--transcribe", "then_transcribe", is_flag=True, help="Transcribe the recording afterwards")
@click.pass_context
def record(ctx: click.Context, duration: Optional[int], device_id: Optional[str],
           audio_format: Optional[str], then_transcribe: bool) -> None:
    """Record audio until Ctrl+C (or --duration)."""
    app: AppContext = ctx.obj
    service = app.recording_service
    started = _check(service.start_recording(device_id=device_id, audio_format=audio_format))
    console.print(f"🔴 Recording to [cyan]{started['output_path']}[/] (Ctrl+C to stop)")

    try:
        while True:
            time.sleep(STATUS_POLL_SECONDS)
            status = service.get_status()
            if status.get("state") == "Failed":
                console.print("[bold red]❌ Encoder stopped unexpectedly[/]")
                sys.exit(1)
            if duration and status.get("elapsed_seconds", 0) >= duration:
                break
    except KeyboardInterrupt:
        console.print()

    stopped = _check(service.stop_recording())
    console.print(Panel(
        f"File: {stopped['output_path']}\n"
        f"Duration: {format_duration(stopped['duration_seconds'])}\n"
        f"Size: {stopped['size_bytes']:,} bytes",
        title="✅ Recording saved",
        border_style="green",
    ))

    if then_transcribe:
        ctx.invoke(transcribe, path=stopped["output_path"])


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--model", "model_tag", default=None, help="Local model (tiny, base, small, medium, large)")
@click.option("--language", default=None, help="Language code or 'auto'")
@click.option("--format", "export_format", type=click.Choice(EXPORT_FORMATS), default=None,
              help="Transcript format written next to the recording")
@click.option("--no-save", is_flag=True, help="Print the transcript without writing a file")
@click.pass_obj
def transcribe(app: AppContext, path: str, model_tag: Optional[str] = None, language: Optional[str] = None,
               export_format: Optional[str] = None, no_save: bool = False) -> None:
    """Transcribe an audio file. Ctrl+C cancels."""
    service = app.transcription_service
    estimate = service.estimate(path, model_tag=model_tag)
    if estimate.get("success"):
        console.print(f"⏱  {estimate['message']}")

    export_format = None if no_save else (export_format or app.config.get('export_format', 'txt'))

    with Progress(SpinnerColumn(), TextColumn("{task.description}"), BarColumn(),
                  TextColumn("{task.percentage:>3.0f}%"), console=console) as progress:
        task = progress.add_task("Transcribing", total=100)

        def on_progress(event):
            progress.update(task, completed=event.progress, description=event.status)

        service.subscribe_progress(on_progress)
        try:
            with ThreadPoolExecutor(max_workers=1) as executor:
                future = executor.submit(service.transcribe, path, model_tag, export_format, language=language)
                try:
                    while not future.done():
                        time.sleep(0.1)
                except KeyboardInterrupt:
                    service.cancel()
                    progress.update(task, description="Cancelling")
                result = future.result()
        finally:
            service.unsubscribe_progress(on_progress)

    _check(result)
    console.print(Panel(result["result"]["text"] or "(no speech detected)", title="📝 Transcript"))
    if result.get("transcript_path"):
        console.print(f"Saved to [cyan]{result['transcript_path']}[/]")


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--model", "model_tag", default=None)
@click.option("--backend", "backend_tag", default=None, help="cpu, cuda, vulkan or metal")
@click.option("--beam-size", type=int, default=None)
@click.pass_obj
def estimate(app: AppContext, path: str, model_tag: Optional[str], backend_tag: Optional[str],
             beam_size: Optional[int]) -> None:
    """Estimate how long transcription will take (indicative only)."""
    report = _check(app.transcription_service.estimate(path, model_tag, backend_tag, beam_size))
    table = Table(show_header=False)
    table.add_row("Audio", report["formatted"]["audio"])
    table.add_row("Model / backend", f"{report['model']} / {report['backend']}")
    table.add_row("Estimated", report["formatted"]["estimated"])
    table.add_row("Range", f"{report['formatted']['min']} to {report['formatted']['max']}")
    console.print(table)
    console.print(report["message"])


@cli.group()
def recordings() -> None:
    """Manage recordings."""


@recordings.command("list")
@click.pass_obj
def recordings_list(app: AppContext) -> None:
    result = _check(app.recording_service.list_recordings())
    table = Table(title="🎵 Recordings", show_header=True, header_style="bold magenta")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    table.add_column("Transcript")
    for recording in result["recordings"]:
        table.add_row(
            recording["name"],
            f"{recording['size_bytes']:,}",
            recording["modified"][:19],
            "✅" if recording["has_transcript"] else "",
        )
    console.print(table)


@recordings.command("rename")
@click.argument("path", type=click.Path())
@click.argument("new_name")
@click.pass_obj
def recordings_rename(app: AppContext, path: str, new_name: str) -> None:
    result = _check(app.recording_service.rename_recording(path, new_name))
    console.print(f"Renamed to [cyan]{result['path']}[/]")


@recordings.command("delete")
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.confirmation_option(prompt="Delete these recordings and their transcripts?")
@click.pass_obj
def recordings_delete(app: AppContext, paths) -> None:
    result = _check(app.recording_service.delete_recordings(list(paths)))
    console.print(f"Deleted {len(result['deleted'])} recording(s)")


@cli.group()
def models() -> None:
    """Manage local speech models."""


@models.command("list")
@click.pass_obj
def models_list(app: AppContext) -> None:
    result = _check(app.transcription_service.list_models())
    table = Table(title="🧠 Models", show_header=True, header_style="bold magenta")
    table.add_column("Model")
    table.add_column("File")
    table.add_column("Size (MiB)", justify="right")
    table.add_column("Status")
    for model in result["models"]:
        if not model["downloaded"]:
            status = "not downloaded"
        else:
            status = "✅ valid" if model["valid"] else "[red]invalid[/]"
        table.add_row(model["name"], model["file_name"], f"{model['size_bytes'] / 1048576:.0f}", status)
    console.print(table)


@models.command("download")
@click.argument("model_tag")
@click.pass_obj
def models_download(app: AppContext, model_tag: str) -> None:
    with Progress(TextColumn("{task.description}"), BarColumn(), TextColumn("{task.percentage:>3.0f}%"),
                  console=console) as progress:
        task = progress.add_task(f"Downloading {model_tag}", total=None)

        def on_chunk(downloaded: int, total: Optional[int]) -> None:
            progress.update(task, completed=downloaded, total=total)

        result = app.transcription_service.force_download_model(model_tag, on_chunk)
    _check(result)
    console.print(f"✅ Model saved to [cyan]{result['path']}[/]")


@models.command("delete")
@click.argument("model_tag")
@click.pass_obj
def models_delete(app: AppContext, model_tag: str) -> None:
    result = _check(app.transcription_service.delete_model(model_tag))
    console.print("Deleted" if result["deleted"] else f"Model {model_tag} was not downloaded")


@cli.group("config")
def config_group() -> None:
    """Show or change settings."""


@config_group.command("show")
@click.pass_obj
def config_show(app: AppContext) -> None:
    table = Table(title=str(app.config.config_file), show_header=True, header_style="bold magenta")
    table.add_column("Key")
    table.add_column("Value")
    for key, value in app.config.as_dict().items():
        if key == "openai_api_key" and value:
            value = value[:4] + "…"
        table.add_row(key, str(value))
    console.print(table)


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(app: AppContext, key: str, value: str) -> None:
    try:
        app.config.set(key, value)
    except ValueError as e:
        console.print(f"[bold red]❌ {e}[/]")
        sys.exit(1)
    console.print(f"{key} = {app.config.get(key)!r}")


@config_group.command("reset")
@click.confirmation_option(prompt="Reset all settings to defaults?")
@click.pass_obj
def config_reset(app: AppContext) -> None:
    app.config.reset()
    console.print("Settings reset to defaults")


def main() -> None:
    """Main entry point for MeetScribe."""
    try:
        cli(obj=None)
    except Exception as e:
        console.print(f"[bold red]❌ Error:[/] {e}")
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
