from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Final

from .config import Settings
from .counters import CounterStore
from .db import InsertOutcome, SubscriberStore
from .ratelimit import is_rate_limited

logger = logging.getLogger(__name__)

SUBSCRIBE_COMMAND: Final[str] = "FINDOOTD"
HELP_COMMAND: Final[str] = "HELPOOTD"

DOWNLOAD_URL: Final[str] = "https://ootd-website.vercel.app/"
DISCORD_URL: Final[str] = "https://discord.gg/erJWg63SdP"

RATE_LIMITED_REPLY: Final[str] = "Message rate limit exceeded. Please try again later."
CONFIG_ERROR_REPLY: Final[str] = "Server configuration error."
LOOKUP_ERROR_REPLY: Final[str] = "There was a server error checking your status."
ALREADY_SUBSCRIBED_REPLY: Final[str] = "Hey! You've already got the download for the app."
SUBSCRIBED_REPLY: Final[str] = f"Thanks for subscribing! Here's the download link: {DOWNLOAD_URL}"
SUBSCRIBE_ERROR_REPLY: Final[str] = "Sorry, there was an error subscribing you. Please try again."
HELP_REPLY: Final[str] = f"Need help? Join our discord: {DISCORD_URL}"
UNKNOWN_COMMAND_REPLY: Final[str] = (
    f"Unknown command. Text {SUBSCRIBE_COMMAND} to subscribe or {HELP_COMMAND} for help."
)
UNEXPECTED_ERROR_REPLY: Final[str] = "An unexpected error occurred. Please try again later."

SubscriberStoreFactory = Callable[[Settings], SubscriberStore]


def normalize_command(text: str) -> str:
    return text.strip().upper()


def handle_message(
    phone: str,
    text: str,
    *,
    settings: Settings,
    counters: CounterStore,
    subscriber_store_factory: SubscriberStoreFactory,
) -> str:
    """
    Core business logic for one inbound SMS; returns the reply text.

    - rate limit the sender (fails open if the counter store is down)
    - refuse to touch the record store if it isn't configured
    - look the sender up, then dispatch on the command

    Never raises: every failure maps to a user-facing reply.
    """
    # 1. Rate limit before any datastore access
    if is_rate_limited(
        counters,
        phone,
        max_messages=settings.rate_limit_max,
        window_seconds=settings.rate_limit_window_seconds,
    ):
        return RATE_LIMITED_REPLY

    command = normalize_command(text)

    # 2. Configuration check
    if not settings.record_store_configured:
        logger.error("Record store settings missing (DATABASE_URL / DATABASE_KEY)")
        return CONFIG_ERROR_REPLY

    try:
        subscribers = subscriber_store_factory(settings)

        # 3. Lookup; a read error ends the request here
        lookup = subscribers.lookup(phone)
        if not lookup.ok:
            logger.error("Subscriber lookup failed for %s: %s", phone, lookup.error)
            return LOOKUP_ERROR_REPLY

        # 4. Dispatch on the command
        if command == SUBSCRIBE_COMMAND:
            return _subscribe(subscribers, phone, already_subscribed=lookup.found)
        if command == HELP_COMMAND:
            return _help(subscribers, phone, already_subscribed=lookup.found)
        return UNKNOWN_COMMAND_REPLY
    except Exception:
        logger.exception("Unexpected error handling message from %s", phone)
        return UNEXPECTED_ERROR_REPLY


def _subscribe(subscribers: SubscriberStore, phone: str, already_subscribed: bool) -> str:
    if already_subscribed:
        return ALREADY_SUBSCRIBED_REPLY

    result = subscribers.insert(phone)
    if result.outcome is InsertOutcome.INSERTED:
        return SUBSCRIBED_REPLY
    if result.outcome is InsertOutcome.DUPLICATE:
        # Lost the race with a concurrent subscribe for the same number
        return ALREADY_SUBSCRIBED_REPLY

    logger.error("Subscriber insert failed for %s: %s", phone, result.error)
    return SUBSCRIBE_ERROR_REPLY


def _help(subscribers: SubscriberStore, phone: str, already_subscribed: bool) -> str:
    # Best-effort: texting for help also signs the number up
    if not already_subscribed:
        result = subscribers.insert(phone)
        if result.outcome is InsertOutcome.FAILED:
            logger.error(
                "Subscriber insert failed on help request for %s: %s", phone, result.error
            )
    return HELP_REPLY
