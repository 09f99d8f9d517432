from __future__ import annotations

import logging
from pathlib import Path


def resolve_level(level: str | int, verbose: bool = False) -> int:
    resolved = level if isinstance(level, int) else getattr(logging, str(level).upper(), logging.WARNING)
    if verbose:
        return min(resolved, logging.INFO)
    return resolved


def configure_logging(level: str | int, log_file: Path | None = None, verbose: bool = False) -> None:
    """Route log records to stderr, and to ``log_file`` when one is given.

    Progress lines go to stdout separately, so the default level stays at WARNING.
    """

    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=resolve_level(level, verbose=verbose),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        force=True,
    )
