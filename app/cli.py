"""
Maintenance commands (clear-logs, forget).
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer

from app.config import get_settings
from app.db.postgres import init_db, close_db
from app.services.cache import build_cache_store

cli = typer.Typer(help="Cinema proxy maintenance commands")


@cli.command("clear-logs")
def clear_logs(
    log_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--dir",
            help="Log directory (default: directory of LOG_FILE)",
        ),
    ] = None,
) -> None:
    """
    Delete every file in the log directory.
    """
    if log_dir is None:
        settings = get_settings()
        if not settings.log_file:
            typer.echo("No log directory given and LOG_FILE is not set.")
            raise typer.Exit(code=1)
        log_dir = Path(settings.log_file).parent

    if not log_dir.is_dir():
        typer.echo(f"Log directory does not exist: {log_dir}")
        raise typer.Exit(code=1)

    removed = 0
    for path in log_dir.iterdir():
        if path.is_file():
            path.unlink()
            removed += 1

    typer.echo(f"Removed {removed} log file(s) from {log_dir}")


@cli.command("forget")
def forget(
    key: Annotated[str, typer.Argument(help="Cache key, e.g. cinemas_list or movies_cinema_9")],
) -> None:
    """
    Invalidate one cache key so the next request refetches it.

    Only meaningful for the shared Postgres backend; the memory backend lives
    inside the server process.
    """
    settings = get_settings()
    if settings.cache_backend.lower() != "postgres":
        typer.echo("The memory cache is process-local; restart the server to clear it.")
        raise typer.Exit(code=1)

    asyncio.run(_forget_async(key))
    typer.echo(f"Forgot {key}")


async def _forget_async(key: str) -> None:
    await init_db()
    try:
        cache = build_cache_store(get_settings())
        await cache.forget(key)
    finally:
        await close_db()


if __name__ == "__main__":
    cli()
