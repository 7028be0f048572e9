"""Shared test fixtures for notevault."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


def write_note(
    directory: Path,
    name: str,
    gist: str | None = None,
    note_type: str | None = "note",
    area: str | None = "tech",
    tags: list[str] | None = None,
    body: str = "Body text.\n",
) -> Path:
    """Write a markdown note with YAML frontmatter."""
    lines = ["---"]
    if note_type:
        lines.append(f"type: {note_type}")
    lines.append("status: active")
    if area:
        lines.append(f"area: {area}")
    if gist is not None:
        lines.append(f"gist: {json.dumps(gist)}")
    if tags is not None:
        lines.append(f"tags: [{', '.join(tags)}]")
    lines.append("---")
    path = directory / f"{name}.md"
    path.write_text("\n".join(lines) + "\n\n" + body, encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep user-level settings out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def tmp_vault(tmp_path: Path) -> Path:
    """Create a temporary vault structure."""
    vault = tmp_path / "vault"
    vault.mkdir()
    (vault / ".notevault").mkdir()
    for d in ("Notes", "Projects", "Archive"):
        (vault / d).mkdir()
    return vault


@pytest.fixture
def populated_vault(tmp_vault: Path) -> Path:
    """A vault with two notes that have gists and one that does not."""
    notes = tmp_vault / "Notes"
    write_note(notes, "gpu-sharing", gist="GPU memory sharing methods", tags=["gpu", "memory"])
    write_note(notes, "recipes", gist="cooking recipes", area="life", tags=["food"])
    write_note(tmp_vault / "Projects", "draft", gist=None, note_type="project", tags=["gpu"])
    return tmp_vault
