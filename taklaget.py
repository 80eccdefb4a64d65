#!/usr/bin/env python3
"""Taklaget management CLI."""

import asyncio
import dataclasses
import os
import subprocess
import sys
from datetime import datetime, timezone

import click


def _run(args: list[str], *, replace: bool = False) -> None:
    click.echo(
        f"  {click.style('>', dim=True)} {click.style(' '.join(args), dim=True)}\n"
    )
    if replace:
        os.execvp(args[0], args)
    result = subprocess.run(args)
    if result.returncode != 0:
        click.echo(
            f"  {click.style('✗', fg='red')} exited with code {result.returncode}"
        )
        sys.exit(result.returncode)


def _ok(text: str) -> None:
    click.echo(f"  {click.style('✓', fg='green')} {text}")


def _header(text: str) -> None:
    click.echo(f"\n  {click.style(text, fg='cyan', bold=True)}\n")


@click.group()
def cli() -> None:
    """Taklaget management CLI."""


@cli.command()
@click.argument("uvicorn_args", nargs=-1)
def app(uvicorn_args: tuple[str, ...]) -> None:
    """Start uvicorn with --reload."""
    _header("Starting Taklaget")
    _run(
        ["uv", "run", "uvicorn", "src.app:app", "--reload", *uvicorn_args], replace=True
    )


@cli.group()
def db() -> None:
    """Database management commands."""


@db.command()
def up() -> None:
    """Start PostgreSQL (docker compose up)."""
    _header("Starting PostgreSQL")
    _run(["docker", "compose", "up", "-d"])
    _ok("PostgreSQL is running")


@db.command()
def down() -> None:
    """Stop PostgreSQL (docker compose down)."""
    _header("Stopping PostgreSQL")
    _run(["docker", "compose", "down"])
    _ok("PostgreSQL stopped")


@db.command()
def migrate() -> None:
    """Run alembic upgrade head."""
    _header("Running migrations")
    _run(["uv", "run", "alembic", "upgrade", "head"])
    _ok("Migrations applied")


@db.command()
@click.argument("message", default="auto")
def revision(message: str) -> None:
    """Generate alembic migration."""
    _header(f"Generating migration: {message}")
    _run(["uv", "run", "alembic", "revision", "--autogenerate", "-m", message])
    _ok("Migration generated")


@cli.command()
@click.argument("pytest_args", nargs=-1)
def test(pytest_args: tuple[str, ...]) -> None:
    """Run pytest."""
    _header("Running tests")
    _run(["uv", "run", "pytest", "tests/", "-v", *pytest_args], replace=True)


@cli.command()
def lint() -> None:
    """Run mypy."""
    _header("Running mypy")
    _run(["uv", "run", "mypy", "."])
    _ok("Type check passed")


def _parse_instant(
    ctx: click.Context, param: click.Parameter, value: str | None
) -> datetime | None:
    if value is None:
        return None
    try:
        at = datetime.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter(f"not an ISO 8601 timestamp: {value}") from exc
    # naive timestamps are taken as UTC
    return at if at.tzinfo is not None else at.replace(tzinfo=timezone.utc)


def _summary(counts: dict[str, int]) -> None:
    width = max(len(name) for name in counts)
    for name, count in counts.items():
        click.echo(f"  {name.ljust(width)}  {click.style(str(count), bold=True)}")


@cli.command()
@click.option(
    "--at",
    callback=_parse_instant,
    help="Evaluate the ladder as of this ISO 8601 instant instead of now.",
)
def sweep(at: datetime | None) -> None:
    """Run one offer follow-up sweep."""
    from src.scheduler import run_offer_sweep

    _header("Sweeping open offers")
    summary = asyncio.run(run_offer_sweep(at))
    _summary(dataclasses.asdict(summary))
    if summary.errors:
        click.echo(f"  {click.style('✗', fg='red')} {summary.errors} offers failed")
        sys.exit(1)
    _ok("Sweep finished")


@cli.command()
@click.option(
    "--at",
    callback=_parse_instant,
    help="Evaluate cooldowns as of this ISO 8601 instant instead of now.",
)
def weather(at: datetime | None) -> None:
    """Run one weather alert pass."""
    from src.scheduler import run_weather_alerts

    _header("Checking weather conditions")
    summary = asyncio.run(run_weather_alerts(at))
    _summary(dataclasses.asdict(summary))
    _ok("Weather pass finished")


if __name__ == "__main__":
    cli()
