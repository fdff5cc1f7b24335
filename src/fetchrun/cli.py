"""CLI interface using typer."""

import asyncio

import typer

from .config import RunSettings
from .dispatch import exponential_backoff, no_delay, run_requests
from .logging_conf import configure_logging
from .specs import load_requests

app = typer.Typer(
    name="fetchrun",
    help="Concurrent fetch-and-extract runs over a fixed set of HTTP requests",
    no_args_is_help=True,
)


@app.command()
def run(
    requests_file: str = typer.Argument(..., help="JSON or JSONL file of requests"),
    output: str = typer.Option(None, "-o", "--output", help="Output directory"),
    min_concurrency: int = typer.Option(None, "--min-concurrency", help="Minimum concurrent requests"),
    max_concurrency: int = typer.Option(None, "--max-concurrency", "-c", help="Maximum concurrent requests"),
    max_retries: int = typer.Option(None, "--max-retries", "-r", help="Retries per request"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-request timeout (seconds)"),
    max_requests: int = typer.Option(None, "--max-requests", "-n", help="Requests per run (0 = unlimited)"),
    items_path: str = typer.Option(None, "--items-path", help="Dotted path of the value to extract"),
    retry_delay: float = typer.Option(0.0, "--retry-delay", help="Base for exponential retry backoff (seconds)"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Debug logging"),
):
    """Fetch every request in a file and store the extracted payloads."""
    overrides = {
        "min_concurrency": min_concurrency,
        "max_concurrency": max_concurrency,
        "max_retries": max_retries,
        "request_timeout": timeout,
        "max_requests_per_run": max_requests,
        "items_path": items_path,
        "output_dir": output,
    }
    if verbose:
        overrides["log_level"] = "DEBUG"
    try:
        config = RunSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValueError as e:
        typer.echo(f"Invalid settings: {e}", err=True)
        raise typer.Exit(code=2)

    configure_logging(config.log_level)
    try:
        specs = load_requests(requests_file)
    except (OSError, ValueError) as e:
        typer.echo(f"Could not load requests from {requests_file}: {e}", err=True)
        raise typer.Exit(code=2)
    typer.echo(f"Loaded {len(specs)} requests from {requests_file}")
    typer.echo(
        f"Concurrency: {config.min_concurrency}-{config.max_concurrency}, "
        f"Max retries: {config.max_retries}, Max requests: {config.max_requests_per_run or 'unlimited'}"
    )

    summary = asyncio.run(run_requests(
        specs,
        config=config,
        retry_delay=exponential_backoff(retry_delay) if retry_delay > 0 else no_delay,
    ))

    typer.echo(
        f"\nRun complete: {summary.completed} finished, {summary.delivered} delivered, {summary.failed} failed, "
        f"{summary.sink_errors} not stored in {summary.elapsed:.1f}s"
    )
    typer.echo(f"Attempts: {summary.attempts}, Skipped: {summary.skipped}")
    if summary.cancelled:
        typer.echo(f"Run was cancelled: {summary.untried} requests never attempted")
    typer.echo(f"Results saved to {config.output_dir}")


@app.command()
def version():
    """Show version."""
    from . import __version__

    typer.echo(f"fetchrun {__version__}")


if __name__ == "__main__":
    app()
