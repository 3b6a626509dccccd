"""
Logging configuration for the application.

``setup_logging`` attaches a console handler (and optionally a file handler)
to the root logger. Every module logs through ``logging.getLogger(__name__)``,
so log lines carry the module path, e.g. ``app.services.card_ledger``.

Card numbers, ciphertext and passwords are never passed to a logger; only
card ids, amounts and counts are.
"""

import logging
from pathlib import Path


def setup_logging(level: str = "INFO", logfile: str | None = None) -> None:
    """
    Configure the root logger exactly once.

    Args:
        level: Logging level name (e.g. "DEBUG", "INFO"). Case insensitive;
               unknown names fall back to INFO.
        logfile: Optional path to also write log lines to.
    """
    root = logging.getLogger()
    if root.handlers:
        # Already configured (uvicorn, pytest, or a repeated lifespan startup)
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if logfile:
        log_path = Path(logfile).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
