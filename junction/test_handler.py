#!/usr/bin/env python3
"""Tests for the open-with request handler."""

import asyncio
import io
import json

import pytest

from junction import handler
from junction.desktop import Registry


def write_entry(directory, filename, **keys):
    lines = ["[Desktop Entry]", "Type=Application"]
    lines.extend(f"{key}={value}" for key, value in keys.items())
    (directory / filename).write_text("\n".join(lines) + "\n", encoding="utf-8")


@pytest.fixture
def registry(tmp_path):
    write_entry(
        tmp_path,
        "org.gnome.TextEditor.desktop",
        Name="Text Editor",
        Comment="Edit text files",
        Icon="org.gnome.TextEditor",
        Exec="gnome-text-editor %U",
        MimeType="text/plain;text/markdown;",
    )
    write_entry(
        tmp_path,
        "org.vim.Vim.desktop",
        Name="Vim",
        Exec="vim %F",
        MimeType="text/plain;",
    )
    write_entry(
        tmp_path,
        "org.gnome.Loupe.desktop",
        Name="Image Viewer",
        Exec="loupe %U",
        MimeType="image/png;",
    )
    registry = Registry(paths=[tmp_path], sandboxed=False)
    asyncio.run(registry.build())
    return registry


class TestFuzzyMatch:
    def test_substring(self):
        assert handler.fuzzy_match("edit", "Text Editor")

    def test_in_order_characters(self):
        assert handler.fuzzy_match("txed", "Text Editor")

    def test_large_gap_does_not_match(self):
        assert not handler.fuzzy_match("ar", "a-long-gap-before-r")


class TestHandleRequest:
    """Tests for request dispatch."""

    def test_initial_lists_apps_for_content_type(self, registry):
        response = handler.handle_request(
            {"step": "initial", "contentType": "text/plain"}, registry
        )

        assert response["type"] == "results"
        assert [r["name"] for r in response["results"]] == ["Text Editor", "Vim"]
        assert response["context"] == "text/plain"

        editor = response["results"][0]
        assert editor["description"] == "Edit text files"
        assert editor["icon"] == "org.gnome.TextEditor"
        assert editor["iconType"] == "system"
        assert editor["id"].endswith("org.gnome.TextEditor.desktop")

    def test_search_filters_by_query(self, registry):
        response = handler.handle_request(
            {"step": "search", "contentType": "text/plain", "query": "vim"}, registry
        )
        assert [r["name"] for r in response["results"]] == ["Vim"]

    def test_search_uses_context_as_content_type(self, registry):
        response = handler.handle_request(
            {"step": "search", "context": "image/png", "query": ""}, registry
        )
        assert [r["name"] for r in response["results"]] == ["Image Viewer"]

    def test_no_match_gives_placeholder(self, registry):
        response = handler.handle_request(
            {"step": "initial", "contentType": "application/pdf"}, registry
        )

        assert len(response["results"]) == 1
        assert response["results"][0]["id"] == "__empty__"

    def test_missing_content_type(self, registry):
        response = handler.handle_request({"step": "initial"}, registry)
        assert response["type"] == "error"

    def test_action_launches_app(self, registry):
        listing = handler.handle_request(
            {"step": "initial", "contentType": "image/png"}, registry
        )
        selected_id = listing["results"][0]["id"]

        response = handler.handle_request(
            {"step": "action", "selected": {"id": selected_id}}, registry
        )

        assert response["type"] == "execute"
        assert response["launch"] == selected_id
        assert response["close"] is True
        assert response["name"] == "Open with Image Viewer"

    def test_sandboxed_action_runs_on_host(self, tmp_path):
        apps_dir = tmp_path / "apps"
        apps_dir.mkdir()
        write_entry(apps_dir, "ed.desktop", Name="ed", Exec="ed %U", MimeType="text/plain;")
        sandboxed = Registry(paths=[apps_dir], sandboxed=True)
        asyncio.run(sandboxed.build())
        selected_id = str(apps_dir / "ed.desktop")

        response = handler.handle_request(
            {
                "step": "action",
                "selected": {"id": selected_id},
                "uris": ["file:///tmp/notes.txt"],
            },
            sandboxed,
        )

        assert response["type"] == "execute"
        assert response["run"] == "flatpak-spawn --host ed file:///tmp/notes.txt"
        assert "launch" not in response

    def test_action_on_placeholder_is_noop(self, registry):
        response = handler.handle_request(
            {"step": "action", "selected": {"id": "__empty__"}}, registry
        )
        assert response == {"type": "execute"}

    def test_action_unknown_app(self, registry):
        response = handler.handle_request(
            {"step": "action", "selected": {"id": "/nowhere/app.desktop"}}, registry
        )
        assert response["type"] == "error"

    def test_unsupported_step(self, registry):
        response = handler.handle_request({"step": "index"}, registry)
        assert response == {"type": "error", "message": "Unsupported step: index"}


class TestMain:
    """Tests for the stdin/stdout entry point."""

    def test_emits_one_response(self, registry, monkeypatch, capsys):
        monkeypatch.setattr(handler.Registry, "from_config", classmethod(lambda cls: registry))
        monkeypatch.setattr(
            "sys.stdin", io.StringIO(json.dumps({"step": "initial", "contentType": "text/plain"}))
        )

        handler.main()

        response = json.loads(capsys.readouterr().out)
        assert [r["name"] for r in response["results"]] == ["Text Editor", "Vim"]

    def test_invalid_json(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO("{oops"))

        handler.main()

        response = json.loads(capsys.readouterr().out)
        assert response["type"] == "error"
        assert response["message"] == "Invalid request"
