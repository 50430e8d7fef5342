"""Shared pytest fixtures."""

import pytest

# Programs named by the Exec lines of test desktop entries
TEST_PROGRAMS = ["editor", "viewer", "vim", "gnome-text-editor", "loupe", "nomime", "ed"]


@pytest.fixture(autouse=True)
def installed_programs(tmp_path_factory, monkeypatch):
    """Put stub executables for the test applications first on PATH."""
    bin_dir = tmp_path_factory.mktemp("bin")
    for name in TEST_PROGRAMS:
        program = bin_dir / name
        program.write_text("#!/bin/sh\n", encoding="utf-8")
        program.chmod(0o755)
    monkeypatch.setenv("PATH", str(bin_dir), prepend=":")
    return bin_dir
