"""YAML frontmatter parsing for vault notes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

import yaml


# The closing delimiter must be a line of its own.
_FRONTMATTER_RE = re.compile(r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?$", re.MULTILINE | re.DOTALL)
_GIST_LINE_RE = re.compile(r"^gist:[ \t]*(.*?)[ \t]*\r?$", re.MULTILINE)


def split_frontmatter(content: str) -> tuple[str | None, str]:
    """Split markdown content into (raw frontmatter text, body).

    The raw text is None when the note has no frontmatter block.
    """
    match = _FRONTMATTER_RE.match(content)
    if match is None:
        return None, content
    return match.group(1), content[match.end():].lstrip("\r\n")


def extract_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter and body from markdown content.

    Returns (frontmatter_dict, body_text).
    """
    raw, body = split_frontmatter(content)
    if raw is None:
        return {}, content

    try:
        fm = yaml.safe_load(raw) or {}
    except yaml.YAMLError:
        fm = {}
    if not isinstance(fm, dict):
        fm = {}
    return fm, body


@dataclass
class Frontmatter:
    """The note fields the search index cares about."""
    note_type: str | None = None
    status: str | None = None
    area: str | None = None
    gist: str | None = None
    tags: list[str] = field(default_factory=list)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, fm: dict[str, Any]) -> Frontmatter:
        return cls(
            note_type=_scalar(fm.get("type")),
            status=_scalar(fm.get("status")),
            area=_scalar(fm.get("area")),
            gist=_scalar(fm.get("gist")),
            tags=_tags(fm.get("tags")),
            raw=fm,
        )

    @classmethod
    def parse(cls, content: str) -> Frontmatter | None:
        """Parse frontmatter from note content; None if the note has none."""
        fm, _ = extract_frontmatter(content)
        if not fm:
            return None
        parsed = cls.from_dict(fm)
        gist = fm.get("gist")
        if gist is not None and not isinstance(gist, (str, list, dict)):
            # YAML typed the gist (yes, 2024-01-01, 3.0); keep what was written
            parsed.gist = _raw_gist(content) or parsed.gist
        return parsed


def _raw_gist(content: str) -> str | None:
    raw, _ = split_frontmatter(content)
    match = _GIST_LINE_RE.search(raw or "")
    if match is None:
        return None
    return match.group(1) or None


def _scalar(value: Any) -> str | None:
    if value is None or isinstance(value, (list, dict)):
        return None
    text = str(value).strip()
    return text or None


def _tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, list):
        items = value
    else:
        items = [value]
    tags = []
    for item in items:
        if item is None:
            continue
        tag = str(item).strip().strip("'\"")
        if tag:
            tags.append(tag)
    return tags
