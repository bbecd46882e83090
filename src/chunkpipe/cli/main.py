"""CLI interface for chunked uploads."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
)
from rich.table import Table

from ..core.api import ChunkUploadAPI
from ..core.config import Settings
from ..core.exceptions import ChunkPipeError
from ..core.models import MB, JobProgress, JobResult, ProjectMetadata
from ..core.planner import ChunkPlanner
from ..core.progress import ProgressAggregator
from ..core.scheduler import Parallel, Sequential

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()


def format_size(size: int) -> str:
    """Format a byte count for display."""
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    elif size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def resolve_chunk_size(chunk_size_mb, file_size: int) -> int:
    """Chunk size in bytes: explicit, else auto-detected from the file size."""
    if chunk_size_mb:
        return int(chunk_size_mb * MB)
    chunk_size = ChunkPlanner.recommend_chunk_size(file_size)
    logger.debug(f"Auto-detected chunk size: {chunk_size // MB}MB for {format_size(file_size)} file")
    return chunk_size


def print_result(result: JobResult) -> None:
    """Print a job summary and any failed chunks."""
    if result.success:
        console.print(f"[green]✓[/green] {result.message}")
    else:
        console.print(f"[red]✗[/red] {result.message}")

    failed = [o for o in result.per_chunk_results if not o.success]
    if not failed:
        return

    table = Table(title="Failed chunks")
    table.add_column("Chunk", justify="right", style="cyan")
    table.add_column("Kind", style="yellow")
    table.add_column("HTTP", justify="right")
    table.add_column("Error", style="red")
    for outcome in failed:
        table.add_row(
            str(outcome.chunk_index),
            outcome.error_kind.value if outcome.error_kind else "-",
            str(outcome.http_status or "-"),
            outcome.error or "",
        )
    console.print(table)


@click.group()
@click.option(
    "--base-url",
    envvar="CHUNKPIPE_BASE_URL",
    help="Processing service URL (or set CHUNKPIPE_BASE_URL env var)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, base_url, verbose):
    """chunkpipe - Upload large media files in chunks."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["base_url"] = base_url


@cli.command()
@click.argument("local_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--chunk-size-mb", type=float, default=None, help="Chunk size in MB (default: auto)")
def plan(local_path, chunk_size_mb):
    """Show how a file would be split into chunks."""
    try:
        file_size = Path(local_path).stat().st_size
        chunk_size = resolve_chunk_size(chunk_size_mb, file_size)
        ranges = ChunkPlanner.plan(file_size, chunk_size)

        table = Table(title=f"{Path(local_path).name}: {len(ranges)} chunks of {format_size(chunk_size)}")
        table.add_column("Index", justify="right", style="cyan")
        table.add_column("Start", justify="right")
        table.add_column("End", justify="right")
        table.add_column("Size", justify="right", style="green")
        table.add_column("Last", justify="center")

        for r in ranges:
            table.add_row(
                str(r.index),
                str(r.start_offset),
                str(r.end_offset),
                format_size(r.size),
                "✓" if r.is_last else "",
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.pass_context
def check(ctx):
    """Check connectivity to the processing service."""

    async def _check():
        async with ChunkUploadAPI(base_url=ctx.obj["base_url"]) as api:
            console.print(f"Checking [cyan]{api.client.base_url}[/cyan]...")
            if not await api.check_connectivity():
                return False, None
            return True, await api.client.status()

    try:
        reachable, status = asyncio.run(_check())
        if not reachable:
            console.print("[red]✗[/red] Service is not reachable")
            sys.exit(1)
        console.print("[green]✓[/green] Service is reachable")
        if status:
            for key, value in status.items():
                console.print(f"  {key}: {value}")

    except ChunkPipeError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("local_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--project-name", prompt="Project name", help="Project name")
@click.option("--description", default="", help="Project description")
@click.option("--source-type", default="file", help="Source type reported to the service")
@click.option("--platform", "platforms", multiple=True, help="Target platform (repeatable)")
@click.option("--prompt", "ai_prompt", default="", help="Prompt for the processing service")
@click.option("--num-clips", type=int, default=3, show_default=True, help="Clips to produce")
@click.option(
    "--mode",
    type=click.Choice(["auto", "sequential", "parallel"], case_sensitive=False),
    default="auto",
    show_default=True,
    help="Dispatch discipline",
)
@click.option("--chunk-size-mb", type=float, default=None, help="Chunk size in MB (default: auto)")
@click.option("--max-concurrency", type=int, default=None, help="Chunks in flight per batch")
@click.option("--max-retries", type=int, default=None, help="Retries per chunk")
@click.option("--no-check", is_flag=True, help="Skip the connectivity check")
@click.pass_context
def upload(
    ctx,
    local_path,
    project_name,
    description,
    source_type,
    platforms,
    ai_prompt,
    num_clips,
    mode,
    chunk_size_mb,
    max_concurrency,
    max_retries,
    no_check,
):
    """Upload a file in chunks."""
    try:
        settings = Settings.from_env(
            base_url=ctx.obj["base_url"],
            max_concurrency=max_concurrency,
            max_retries=max_retries,
        )
        file_size = Path(local_path).stat().st_size
        config = settings.job_config(resolve_chunk_size(chunk_size_mb, file_size))
        metadata = ProjectMetadata(
            project_name=project_name,
            description=description,
            source_type=source_type,
            target_platforms=list(platforms),
            ai_prompt=ai_prompt,
            num_clips=num_clips,
        )

        if mode == "sequential":
            discipline = Sequential()
        elif mode == "parallel":
            discipline = Parallel(config.max_concurrency)
        else:
            discipline = None

        console.print(
            f"Uploading [cyan]{local_path}[/cyan] ({format_size(file_size)}) "
            f"to [green]{settings.base_url}[/green]"
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("{task.fields[stats]}"),
            console=console,
        ) as progress:
            task = progress.add_task("Uploading chunks...", total=100, stats="")

            def on_progress(p: JobProgress) -> None:
                stats = (
                    f"{p.completed}/{p.total_chunks} chunks, {p.failed} failed, "
                    f"{p.throughput_mbps:.2f} MB/s, ETA {ProgressAggregator.format_eta(p.eta_seconds)}"
                )
                progress.update(task, completed=p.overall_percent, stats=stats)

            async def _upload() -> JobResult:
                async with ChunkUploadAPI(settings=settings, config=config) as api:
                    return await api.upload_file(
                        local_path,
                        metadata,
                        discipline=discipline,
                        on_progress=on_progress,
                        check_connection=not no_check,
                    )

            result = asyncio.run(_upload())

        print_result(result)
        if not result.success:
            sys.exit(1)

    except ChunkPipeError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def main():
    """Main entry point."""
    cli()
