# catalog/logger.py
import logging
import os

from dotenv import load_dotenv

load_dotenv()
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_configured = set()


def get_logger(name):
    """
    Return a named logger with a stream handler attached once.

    Child loggers ("catalog.cache") propagate to their configured parent,
    so only top-level names get their own handler.
    """
    logger = logging.getLogger(name)
    root_name = name.split(".")[0]
    if root_name not in _configured:
        parent = logging.getLogger(root_name)
        parent.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        parent.addHandler(handler)
        _configured.add(root_name)
    return logger
