from __future__ import annotations

from .config import get_settings
from .counters import RedisCounterStore
from .db import get_subscriber_store
from .pipeline import handle_message

CLI_PHONE = "+15550000000_cli"


def chat() -> None:
    """
    Interactive CLI that plays the part of an SMS sender.

    Each line goes through the full pipeline (rate limit, lookup, dispatch)
    against the configured Redis and database, using a fixed pseudo-phone
    number. Prints the reply text that would be sent back as TwiML.
    """
    settings = get_settings()
    counters = RedisCounterStore.from_url(settings.redis_url)
    print("OOTD SMS simulator. Type /quit to exit.\n")
    while True:
        try:
            user_input = input("sms> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if not user_input:
            continue
        if user_input.lower() in {"/q", "/quit", "/exit"}:
            break
        reply = handle_message(
            CLI_PHONE,
            user_input,
            settings=settings,
            counters=counters,
            subscriber_store_factory=get_subscriber_store,
        )
        print(f"bot> {reply}\n")


def main() -> None:
    chat()


if __name__ == "__main__":
    main()
