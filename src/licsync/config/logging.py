"""Root logger setup for the CLI and scheduled runs."""

from __future__ import annotations

import logging
import os

# httpx logs every request at INFO, which drowns out the per-batch sync lines
_NOISY_LOGGERS = ("httpx", "httpcore")


def configure_logging(*, level: int | str | None = None, force: bool = False) -> None:
    """Initialise the root logger once; ``LICSYNC_LOG_LEVEL`` sets the default level.

    Pass ``force=True`` to reconfigure during tests or specialised entry points.
    """

    resolved = level if level is not None else os.getenv("LICSYNC_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
