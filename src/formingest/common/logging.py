"""Shared logging helpers for formingest."""

from __future__ import annotations

import logging


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once.

    Mirrors ``logging.basicConfig`` with an INFO default and a terse format.
    Pass ``force=True`` to reconfigure from tests or alternative entry points.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
