"""
Response builders for the launcher plugin protocol.

Each builder returns a plain dict ready for json.dumps(). Optional fields are
only set when given, so the launcher applies its own defaults.
"""

from typing import Any, Optional


def results(
    items: list[dict],
    *,
    input_mode: Optional[str] = None,
    context: Optional[str] = None,
    placeholder: Optional[str] = None,
) -> dict:
    """Build a results response."""
    response: dict[str, Any] = {"type": "results", "results": items}
    if input_mode:
        response["inputMode"] = input_mode
    if context:
        response["context"] = context
    if placeholder:
        response["placeholder"] = placeholder
    return response


def execute(
    *,
    launch: Optional[str] = None,
    run: Optional[str] = None,
    close: bool = False,
) -> dict:
    """Build an execute response.

    `launch` is the path of a desktop entry to start, `run` a command line
    to run as is.
    """
    response: dict[str, Any] = {"type": "execute"}
    if launch:
        response["launch"] = launch
    if run:
        response["run"] = run
    if close:
        response["close"] = close
    return response


def noop() -> dict:
    return {"type": "execute"}


def error(message: str, *, details: str | None = None) -> dict:
    result = {"type": "error", "message": message}
    if details:
        result["details"] = details
    return result
