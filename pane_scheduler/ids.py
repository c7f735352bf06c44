"""
Short identifiers for scheduled jobs.

IDs are 8 characters drawn from a base62 alphabet. The primary path uses
the operating system's secure random source; a clock-based fallback exists
only for platforms where that source fails.
"""

import logging
import os
import string
import time
from typing import Callable

logger = logging.getLogger(__name__)

ID_LENGTH = 8
ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


def generate_id(random_bytes: Callable[[int], bytes] = os.urandom) -> str:
    """
    Generate a short random ID using base62 encoding.

    Args:
        random_bytes: Source of secure random bytes (default: os.urandom)

    Returns:
        An ID_LENGTH character string from ALPHABET
    """
    # Two bytes per character keeps the modulo bias small
    needed = ID_LENGTH * 2
    try:
        buf = random_bytes(needed)
    except (OSError, NotImplementedError) as e:
        logger.warning(f"Secure random source unavailable ({e}), using clock-based ID")
        return fallback_id()

    if len(buf) < needed:
        logger.warning("Secure random source returned a short read, using clock-based ID")
        return fallback_id()

    chars = []
    for i in range(ID_LENGTH):
        val = int.from_bytes(buf[i * 2:i * 2 + 2], "big")
        chars.append(ALPHABET[val % len(ALPHABET)])
    return "".join(chars)


def fallback_id(clock: Callable[[], int] = time.time_ns) -> str:
    """Generate an ID using the clock as entropy. Only used if the secure source fails."""
    entropy = clock()
    chars = []
    for _ in range(ID_LENGTH):
        chars.append(ALPHABET[entropy % len(ALPHABET)])
        entropy //= len(ALPHABET)
    return "".join(chars)
