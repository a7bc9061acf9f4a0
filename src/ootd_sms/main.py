from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from functools import lru_cache

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from .config import Settings, get_settings
from .counters import CounterStore, RedisCounterStore, UnavailableCounterStore
from .db import get_engine, get_subscriber_store, init_db
from .pipeline import SubscriberStoreFactory, handle_message
from .sms import inbound_from_form
from .twiml import twiml_response

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = frozenset({"application/x-www-form-urlencoded", "multipart/form-data"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: runs once before the app starts serving requests
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level_value,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.record_store_configured:
        try:
            init_db(get_engine(settings.database_url, settings.database_key))  # type: ignore[arg-type]
        except Exception:
            # The webhook still answers (with an error reply) while the DB is down
            logger.exception("Could not create subscriber tables")
    else:
        logger.warning("DATABASE_URL / DATABASE_KEY not set; replies will report a config error")
    yield


app = FastAPI(title="ootd-sms", version="0.1.0", lifespan=lifespan)


# --- Store dependencies ---


@lru_cache
def _redis_counter_store(redis_url: str) -> RedisCounterStore:
    return RedisCounterStore.from_url(redis_url)


def get_counter_store(settings: Settings = Depends(get_settings)) -> CounterStore:
    try:
        return _redis_counter_store(settings.redis_url)
    except Exception as exc:
        # Rate limiting fails open; the handler still answers every request
        logger.exception("Could not create Redis client for %s", settings.redis_url)
        return UnavailableCounterStore(exc)


def get_subscriber_store_factory() -> SubscriberStoreFactory:
    # A factory rather than a store: the store must not be built when the
    # record store settings are missing.
    return get_subscriber_store


# --- Routes ---


@app.api_route(
    "/sms/inbound",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
async def sms_inbound(
    request: Request,
    settings: Settings = Depends(get_settings),
    counters: CounterStore = Depends(get_counter_store),
    subscriber_store_factory: SubscriberStoreFactory = Depends(get_subscriber_store_factory),
) -> Response:
    """
    Twilio-style SMS webhook endpoint.

    Behaviour:
      - only POST is accepted (405 otherwise)
      - malformed / incomplete form payloads get a plain 400
      - everything else gets a TwiML reply, including error replies
    """
    if request.method != "POST":
        return PlainTextResponse("Expected POST request", status_code=405)

    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type not in FORM_CONTENT_TYPES:
        logger.error("Unsupported webhook content type %r", content_type)
        return PlainTextResponse("Failed to parse form data", status_code=400)

    try:
        form = await request.form()
    except Exception:
        logger.exception("Error parsing form data")
        return PlainTextResponse("Failed to parse form data", status_code=400)

    inbound = inbound_from_form(form)
    if inbound is None:
        logger.error("Missing From/Body in the webhook form")
        return PlainTextResponse("Missing required fields", status_code=400)

    # Store clients are blocking; keep them off the event loop
    reply = await run_in_threadpool(
        handle_message,
        inbound.phone,
        inbound.text,
        settings=settings,
        counters=counters,
        subscriber_store_factory=subscriber_store_factory,
    )
    return twiml_response(reply)
