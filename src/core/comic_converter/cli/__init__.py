from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from core.settings import apply_settings, get_settings

from ..config import AppConfig, dump_config, load_config
from ..core import ConversionService
from ..jobs import JobEvent, JobManager, JobRecord, JobStatus
from ..logging import configure_logging

console = Console()

app = typer.Typer(help="Convert CBZ comic archives to PDF")


def _load_config(path: Path | None) -> AppConfig:
    settings = get_settings()
    return apply_settings(load_config(path or settings.config_path), settings)


def _follow(manager: JobManager, record: JobRecord, description: str, *, chapters: bool = False) -> tuple[JobRecord, list[str]]:
    labels: list[str] = []
    columns = (
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
    )
    with Progress(*columns, console=console, transient=True) as progress:
        task = progress.add_task(description, total=None)

        def _on_event(event: JobEvent) -> None:
            if event.kind != "progress":
                return
            if chapters:
                labels.append(event.label)
                progress.update(
                    task,
                    description=f"Chapter {event.current} of {event.total}: {event.label}",
                    completed=event.current - 1,
                    total=event.total,
                )
            else:
                progress.update(
                    task,
                    description=f"Adding page {event.current} of {event.total}",
                    completed=event.current,
                    total=event.total,
                )

        final = manager.wait(record.job_id, on_event=_on_event)
    return final, labels


def _fail(record: JobRecord) -> None:
    console.print(f"[red]Conversion failed[/red]: {record.error_code} - {record.error_message}")
    raise typer.Exit(1)


@app.command()
def convert(
    archive: Path,
    output_dir: Path | None = typer.Option(None, "--output-dir", help="Directory for the PDF"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    configure_logging(verbose)
    cfg = _load_config(config)
    manager = JobManager(cfg, ConversionService(cfg))
    try:
        record = manager.submit_archive(archive, output_dir=output_dir)
        final, _ = _follow(manager, record, f"Processing {archive.name}")
    finally:
        manager.shutdown()
    if final.status is not JobStatus.SUCCEEDED:
        _fail(final)
    console.print(f"[green]Success[/green]: PDF saved to: {final.output_path}")
    for warning in final.warnings:
        console.print(f"[yellow]Warning[/yellow]: {warning}")


@app.command()
def batch(
    folder: Path,
    output_dir: Path | None = typer.Option(None, "--output-dir", help="Directory for the chapter PDFs"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    configure_logging(verbose)
    cfg = _load_config(config)
    manager = JobManager(cfg, ConversionService(cfg))
    try:
        record = manager.submit_folder(folder, output_dir=output_dir)
        final, labels = _follow(manager, record, "Scanning folder", chapters=True)
    finally:
        manager.shutdown()
    if final.status is not JobStatus.SUCCEEDED:
        _fail(final)
    table = Table(title="Chapters")
    table.add_column("#", justify="right")
    table.add_column("Archive")
    for index, label in enumerate(labels, start=1):
        table.add_row(str(index), label)
    console.print(table)
    console.print(f"[green]Success[/green]: Saved {final.chapters_written} chapters to: {final.output_path}")


@app.command()
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    console.print_json(dump_config(_load_config(config)))


@app.command()
def serve(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    cfg = _load_config(config)
    if not cfg.runtime.enable_local_api:
        console.print(
            "[red]Local API disabled[/red]. Set enable_local_api = true in config.toml or CCV_ENABLE_LOCAL_API=1."
        )
        raise typer.Exit(1)
    import uvicorn

    from api.app import create_app

    uvicorn.run(create_app(cfg), host=cfg.api.host, port=cfg.api.port)


if __name__ == "__main__":
    app()
