# log_config.py
import logging

from config import Config

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"


def configure_logging(level: str | int | None = None) -> None:
    """
    Reset the root logger to a single stream handler.
    `level` falls back to Config.LOG_LEVEL (INFO unless overridden in .env).
    """
    if level is None:
        level = Config.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
