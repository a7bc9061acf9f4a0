from __future__ import annotations

from typing import Any, Final

from fastapi import Response

TWIML_MEDIA_TYPE: Final[str] = "text/xml"

_XML_ESCAPES: Final[dict[str, str]] = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    "'": "&apos;",
    '"': "&quot;",
}


def escape_xml(unsafe: Any) -> str:
    """Escape text for use inside a TwiML element. None becomes an empty string."""
    if unsafe is None:
        return ""
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in str(unsafe))


def build_twiml(message: str | None) -> str:
    """Wrap a reply in the TwiML envelope Twilio expects for an SMS reply."""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<Response>\n"
        f"  <Message>{escape_xml(message)}</Message>\n"
        "</Response>"
    )


def twiml_response(message: str | None) -> Response:
    return Response(content=build_twiml(message), media_type=TWIML_MEDIA_TYPE)
