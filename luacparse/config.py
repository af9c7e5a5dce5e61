"""
Module-level settings for luacparse.

Turning on the `DEBUG` flag will slow down decoding significantly, every
prototype and header is traced. It is meant for development purposes only.
"""

import logging
import os

DEBUG = os.environ.get("LUACPARSE_DEBUG", "").lower() in ("1", "true", "yes")  #! Will slow down decoding

# Ceiling on prototype nesting, same as the reference interpreter's C-call limit.
DEFAULT_MAX_DEPTH = 200

logger = logging.getLogger("luacparse")


def debug(*args) -> None:
    if DEBUG:
        logger.debug(" ".join(str(arg) for arg in args))
