# familybrief/logger.py
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str, level: str = None) -> logging.Logger:
    """Named stdout logger; LOG_LEVEL (default DEBUG) unless a level is given."""
    level_name = (level or os.getenv("LOG_LEVEL") or "DEBUG").upper()
    resolved = getattr(logging, level_name, logging.DEBUG)

    log = logging.getLogger(name)
    log.setLevel(resolved)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    log.propagate = False
    return log


logger = setup_logger("FamilyBrief")
