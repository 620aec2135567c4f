# catalog/utils.py
"""Shared utilities: the service logger and a retry decorator.

The retry helper is for start-up checks against the relational store only.
Search index calls are never retried; a failed call falls back to storage.
"""
import os
import logging
import time
from functools import wraps
from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

def get_logger(name="catalog-search", level=None):
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, level, logging.INFO))
    # opensearch-py logs every failed request at WARNING; our fallback message is enough
    logging.getLogger("opensearch").setLevel(logging.ERROR)
    return logging.getLogger(name)

logger = get_logger()

def retry(exceptions, tries=3, delay=1, backoff=2, logger=logger):
    """Call the wrapped function up to `tries` times, sleeping `delay * backoff**n` between attempts."""
    def deco_retry(f):
        @wraps(f)
        def f_retry(*args, **kwargs):
            mdelay = delay
            for attempt in range(1, tries):
                try:
                    return f(*args, **kwargs)
                except exceptions as e:
                    logger.warning("%s failed (attempt %d/%d): %s; retrying in %s sec",
                                   f.__name__, attempt, tries, e, mdelay)
                    time.sleep(mdelay)
                    mdelay *= backoff
            return f(*args, **kwargs)
        return f_retry
    return deco_retry
