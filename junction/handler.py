#!/usr/bin/env python3
"""
Open-with handler - list the applications able to open a content type.

Reads one JSON request from stdin and writes one JSON response line to stdout.

Request fields:
- step: "initial", "search" or "action"
- contentType: MIME type to offer applications for
- query: search text (search step)
- selected: {"id": <desktop entry path>} (action step)
"""

import asyncio
import json
import logging
import sys

from junction import responses
from junction.config import is_debug_enabled
from junction.desktop import ApplicationRecord, Registry, get_applications, init

logger = logging.getLogger(__name__)


def emit(data: dict) -> None:
    """Emit JSON response to stdout (line-buffered)."""
    print(json.dumps(data), flush=True)


def fuzzy_match(query: str, text: str) -> bool:
    """Fuzzy match - query is substring or all chars appear in order with reasonable gaps"""
    query = query.lower()
    text = text.lower()

    if query in text:
        return True

    qi = 0
    last_match = -1
    max_gap = 5

    for i, char in enumerate(text):
        if qi < len(query) and char == query[qi]:
            if last_match >= 0 and (i - last_match) > max_gap:
                return False
            last_match = i
            qi += 1

    return qi == len(query)


def matches_app(query: str, app: ApplicationRecord) -> bool:
    if fuzzy_match(query, app.display_name):
        return True
    if fuzzy_match(query, app.comment):
        return True
    return fuzzy_match(query, app.id.removesuffix(".desktop"))


def app_to_result(app: ApplicationRecord) -> dict:
    return {
        "id": app.source_path,
        "name": app.display_name,
        "description": app.comment,
        "icon": app.icon,
        "iconType": "system",
        "verb": "Open",
    }


def build_app_results(registry: Registry, content_type: str, query: str) -> dict:
    apps = get_applications(registry, content_type)
    apps = sorted(apps, key=lambda app: app.display_name.lower())
    if query:
        apps = [app for app in apps if matches_app(query, app)]

    results = [app_to_result(app) for app in apps]
    if not results:
        results = [
            {
                "id": "__empty__",
                "name": f"No apps match '{query}'"
                if query
                else f"No apps can open {content_type}",
                "icon": "search_off",
            }
        ]

    return responses.results(
        results,
        input_mode="realtime",
        placeholder=f"Open {content_type} with...",
        context=content_type,
    )


def find_app(registry: Registry, source_path: str) -> ApplicationRecord | None:
    for app in registry:
        if app.source_path == source_path:
            return app
    return None


def handle_request(request: dict, registry: Registry) -> dict:
    """Build the response to one request."""
    step = request.get("step", "initial")
    query = (request.get("query") or "").strip()
    selected = request.get("selected") or {}
    content_type = request.get("contentType") or request.get("context") or ""

    if step in ("initial", "search"):
        if not content_type:
            return responses.error("Missing content type")
        return build_app_results(registry, content_type, query if step == "search" else "")

    if step == "action":
        selected_id = selected.get("id", "")
        if selected_id == "__empty__":
            return responses.noop()

        app = find_app(registry, selected_id)
        if app is None:
            return responses.error(f"App not found: {selected_id}")

        if registry.sandboxed:
            # The desktop file on disk still holds the sandbox-side Exec
            command = app.command_line(request.get("uris"))
            logger.debug(f"Running {app.id} on the host: {command}")
            response = responses.execute(run=command, close=True)
        else:
            logger.debug(f"Launching {app.id}: {app.source_path}")
            response = responses.execute(launch=app.source_path, close=True)
        response["name"] = f"Open with {app.display_name}"
        response["icon"] = app.icon
        response["iconType"] = "system"
        return response

    return responses.error(f"Unsupported step: {step}")


def main():
    logging.basicConfig(
        level=logging.DEBUG if is_debug_enabled() else logging.WARNING,
        stream=sys.stderr,
        format="[junction] %(levelname)s %(name)s: %(message)s",
    )

    try:
        request = json.load(sys.stdin)
    except json.JSONDecodeError as e:
        emit(responses.error("Invalid request", details=str(e)))
        return

    if not isinstance(request, dict):
        emit(responses.error("Invalid request", details="expected a JSON object"))
        return

    registry = Registry.from_config()
    asyncio.run(init(registry))
    emit(handle_request(request, registry))


if __name__ == "__main__":
    main()
