from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None, **extra) -> dict:
    """Success envelope: ``{"success": true, "data"?, "message"?, ...}``."""
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None or (not extra and message is None):
        body["data"] = data
    body.update(extra)
    return body


def parse_float(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None
