from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel


class InboundSms(BaseModel):
    phone: str
    text: str


def inbound_from_form(form: Mapping[str, Any]) -> InboundSms | None:
    """
    Build an InboundSms from a Twilio webhook form payload.

    Returns None when `From` or `Body` is missing, empty, or not a plain
    string (e.g. an uploaded file part).
    """
    phone = form.get("From")
    text = form.get("Body")
    if not isinstance(phone, str) or not isinstance(text, str):
        return None
    if not phone or not text:
        return None
    return InboundSms(phone=phone, text=text)
