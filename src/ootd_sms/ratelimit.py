from __future__ import annotations

import logging
from typing import Final

from .counters import CounterStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES: Final[int] = 5
DEFAULT_WINDOW_SECONDS: Final[int] = 60


def rate_limit_key(phone: str) -> str:
    return f"ratelimit:{phone}"


def is_rate_limited(
    store: CounterStore,
    phone: str,
    max_messages: int = DEFAULT_MAX_MESSAGES,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> bool:
    """
    Count this message against the sender's window and report whether they
    were already at the limit.

    - absent counter counts as 0
    - at or above max_messages: limited, counter is left untouched
    - otherwise the counter is bumped and its TTL reset to window_seconds

    Counter store failures are logged and treated as "not limited".
    """
    key = rate_limit_key(phone)
    try:
        current = store.get(key) or 0
        logger.info("Rate limit check: %s/%s for %s", current, max_messages, phone)

        if current >= max_messages:
            logger.warning("Rate limit exceeded for %s", phone)
            return True

        store.put(key, current + 1, window_seconds)
    except Exception:
        logger.exception("Rate limiting error for %s", phone)
    return False
