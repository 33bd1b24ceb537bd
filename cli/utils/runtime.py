"""Shared bootstrap for commands that work against the database directly."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from vibereader.config.logging import get_logger, setup_logging
from vibereader.config.settings import Settings
from vibereader.infra.database import Database

from .formatting import print_error

logger = get_logger(__name__)

T = TypeVar("T")


def load_settings() -> Settings:
    """Read settings from the environment and configure logging."""
    try:
        settings = Settings()
    except (ValidationError, ValueError) as e:
        print_error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from None

    setup_logging(settings)
    return settings


def run_with_database(
    settings: Settings, operation: Callable[[Database], Awaitable[T]]
) -> T:
    """
    Run ``operation`` against a freshly opened database.

    Missing tables are created first. Store errors are logged, reported and
    turned into exit code 1.
    """

    async def _main() -> T:
        database = Database(settings)
        try:
            await database.create_all()
            return await operation(database)
        finally:
            await database.close()

    try:
        return asyncio.run(_main())
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database error", error=str(e), exc_info=True)
        print_error(f"Database error: {e}")
        raise typer.Exit(1) from None
