import json
import logging
import os
import sys
from typing import Optional

_LOGGER: Optional[logging.Logger] = None


def get_logger() -> logging.Logger:
    global _LOGGER
    if _LOGGER is not None:
        return _LOGGER

    logger = logging.getLogger("ims")
    logger.propagate = False  # uvicorn would print it twice
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name("json_stream")
        # Each record is already a JSON document
        handler.setFormatter(logging.Formatter("%(message)s"))
        level = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, level, logging.INFO))
        logger.addHandler(handler)

    _LOGGER = logger
    return logger


def log_event(event: str, log_level: int = logging.INFO, **fields) -> None:
    get_logger().log(log_level, json.dumps({"event": event, **fields}, default=str))
