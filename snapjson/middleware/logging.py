"""
Logging setup shared by the bot entrypoint.
"""

import logging

from ..config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    # aiogram logs every update at INFO
    logging.getLogger("aiogram.event").setLevel(logging.WARNING)
    # openai/httpx log every request line
    logging.getLogger("httpx").setLevel(logging.WARNING)
