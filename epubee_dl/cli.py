"""
Command-line interface for epubee-dl.

Uses Typer to provide a CLI with options for the main configuration
settings. The operator is prompted through Rich whenever a download fails
for a reason other than a timeout.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .config import load_config
from .errors import EpubeeError, InvalidSourceError
from .fetch.cache import CacheStore
from .runner import EXAMPLE_BASE_URL, resolve_base_url, run_pipeline

app = typer.Typer(add_completion=False)
console = Console()


def _ask_operator(url: str, error: str) -> bool:
    console.print(f"[red]failed to fetch[/red] {escape(url)}: {escape(error)}")
    try:
        return Confirm.ask("Fix the problem and retry?", default=True, console=console)
    except EOFError:
        # stdin closed; same as declining the retry
        console.print()
        return False


def _prompt_for_url() -> str | None:
    while True:
        try:
            answer = Prompt.ask(f"please input url like: {EXAMPLE_BASE_URL}\nq to quit", console=console)
        except EOFError:
            console.print()
            return None
        if answer.strip() == "q":
            return None
        try:
            return resolve_base_url(answer)
        except InvalidSourceError:
            console.print("invalid url format")


@app.command()
def run(
    url: str | None = typer.Argument(None, help="Reader URL of the book directory."),
    config: Path | None = typer.Option(Path("config.yaml"), "--config", "-c"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Directory for EPUB files."),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Fetch cache directory."),
    timeout: float | None = typer.Option(None, "--timeout", help="Per-request timeout in seconds."),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
    log_file: bool | None = typer.Option(
        None, "--log-file/--no-log-file", help="Enable or disable file logging."
    ),
):
    """Download one book and save it as an EPUB.

    Without URL, asks for one interactively.

    Args:
        url: Reader URL of the book directory
        config: Optional path to YAML config file
        output: Directory for the EPUB file
        cache_dir: Fetch cache directory
        timeout: Per-request timeout in seconds
        progress: Whether to show progress bar
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Enable/disable file logging
    """
    cfg = load_config(str(config) if config else None)

    if output is not None:
        cfg.output.dir = str(output)
    if cache_dir is not None:
        cfg.cache.dir = str(cache_dir)
    if timeout is not None:
        cfg.fetch.timeout_seconds = timeout
    if log_level:
        cfg.logging.level = log_level
    if log_file is not None:
        cfg.logging.file = log_file

    if url is None:
        url = _prompt_for_url()
        if url is None:
            raise typer.Exit()

    try:
        archive_path = run_pipeline(
            url,
            cfg,
            show_progress=progress,
            console=console,
            acknowledge=_ask_operator,
        )
    except EpubeeError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    console.print(f"epub saved in {archive_path}", markup=False, highlight=False, soft_wrap=True)


@app.command()
def cache(
    config: Path | None = typer.Option(Path("config.yaml"), "--config", "-c"),
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Fetch cache directory."),
    list_urls: bool = typer.Option(False, "--list", help="Print every cached URL."),
):
    """Show what the fetch cache holds."""
    cfg = load_config(str(config) if config else None)
    if cache_dir is not None:
        cfg.cache.dir = str(cache_dir)

    try:
        store = CacheStore(
            Path(cfg.cache.dir),
            index_filename=cfg.cache.index_filename,
        )
        cached_urls = list(store.keys())
    except EpubeeError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    console.print(f"{len(cached_urls)} cached urls in {store.cache_dir}", markup=False, soft_wrap=True)
    if list_urls:
        for cached_url in cached_urls:
            console.print(cached_url, markup=False, highlight=False, soft_wrap=True)


if __name__ == "__main__":
    app()
