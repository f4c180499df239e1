"""Skill library - declarative multi-step procedures loaded from markdown.

A skill document looks like::

    ---
    description: Build and restart the web service
    rollback: Restore the previous release from backup
    ---

    # Deploy

    ## Steps
    1. Build the release
    2. Restart the service
    3. Check the health endpoint

Files are either ``<name>.md`` or ``<name>/SKILL.md``. A ``## Rollback``
section may replace the ``rollback`` frontmatter key.
"""

import re
from dataclasses import dataclass
from pathlib import Path

import structlog

from koro.errors import SkillNotFound

logger = structlog.get_logger(__name__)

_ITEM_RE = re.compile(r"^\s*(?:\d+[\.\)]|[-*+])\s+(.*\S)\s*$")
_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*$")


@dataclass(frozen=True)
class SkillDefinition:
    """A named procedure: ordered intent-level steps plus an optional rollback."""

    name: str
    description: str
    steps: tuple[str, ...]
    rollback: str | None = None
    source_file: Path | None = None


def _parse_frontmatter(text: str) -> tuple[dict[str, str], str]:
    """Parse simple ``key: value`` frontmatter from a markdown file.

    Returns (metadata_dict, body_text).
    """
    text = text.strip()
    if not text.startswith("---"):
        return {}, text

    end_idx = text.find("\n---", 3)
    if end_idx == -1:
        return {}, text

    frontmatter_text = text[3:end_idx].strip()
    body = text[end_idx + 4:].strip()

    metadata: dict[str, str] = {}
    for line in frontmatter_text.split("\n"):
        line = line.strip()
        if not line or ":" not in line:
            continue
        key, _, value = line.partition(":")
        metadata[key.strip().lower()] = value.strip().strip('"').strip("'")

    return metadata, body


def _sections(body: str) -> dict[str, list[str]]:
    """Split a markdown body into lowercased heading -> lines."""
    sections: dict[str, list[str]] = {"": []}
    current = ""
    for line in body.splitlines():
        heading = _HEADING_RE.match(line)
        if heading and len(heading.group(1)) >= 2:
            current = heading.group(2).lower()
            sections.setdefault(current, [])
            continue
        sections[current].append(line)
    return sections


def _list_items(lines: list[str]) -> list[str]:
    return [m.group(1) for m in (_ITEM_RE.match(line) for line in lines) if m]


def _summary_line(body: str) -> str:
    for line in body.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            return stripped
    return ""


def parse_skill_document(path: Path, name: str) -> SkillDefinition | None:
    """Parse one skill document. Returns None (logged) when it has no steps."""
    text = path.read_text(encoding="utf-8")
    metadata, body = _parse_frontmatter(text)
    sections = _sections(body)

    steps = _list_items(sections.get("steps", []))
    if not steps:
        logger.warning("skills.no_steps", path=str(path))
        return None

    rollback = metadata.get("rollback") or None
    if rollback is None:
        rollback_lines = [line.strip() for line in sections.get("rollback", []) if line.strip()]
        items = _list_items(rollback_lines)
        if items:
            rollback = items[0]
        elif rollback_lines:
            rollback = " ".join(rollback_lines)

    return SkillDefinition(
        name=metadata.get("name") or name,
        description=metadata.get("description") or _summary_line(body),
        steps=tuple(steps),
        rollback=rollback,
        source_file=path,
    )


class SkillLibrary:
    """Name -> SkillDefinition mapping, loaded from a directory.

    Skills only change on an explicit ``reload()``; request handling never
    rereads the directory.
    """

    def __init__(self, skills_dir: Path):
        self.skills_dir = skills_dir
        self._skills: dict[str, SkillDefinition] = {}
        self.reload()

    def _discover(self) -> list[tuple[str, Path]]:
        if not self.skills_dir.exists():
            return []
        found: list[tuple[str, Path]] = []
        for path in sorted(self.skills_dir.iterdir()):
            if path.name.startswith("."):
                continue
            if path.is_dir() and (path / "SKILL.md").is_file():
                found.append((path.name, path / "SKILL.md"))
            elif path.is_file() and path.suffix == ".md":
                found.append((path.stem, path))
        return found

    def reload(self) -> int:
        """Reread every skill document. Returns the number loaded."""
        skills: dict[str, SkillDefinition] = {}
        for default_name, path in self._discover():
            try:
                skill = parse_skill_document(path, default_name)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("skills.read_error", path=str(path), error=str(e))
                continue
            if skill is None:
                continue
            if skill.name in skills:
                logger.warning(
                    "skills.duplicate_name",
                    name=skill.name,
                    kept=str(skills[skill.name].source_file),
                    ignored=str(path),
                )
                continue
            skills[skill.name] = skill

        self._skills = skills
        logger.info("skills.loaded", count=len(skills), path=str(self.skills_dir))
        return len(skills)

    def resolve(self, name: str) -> SkillDefinition:
        skill = self._skills.get(name)
        if skill is None:
            raise SkillNotFound(name)
        return skill

    def list(self) -> list[tuple[str, str]]:
        """(name, one-line summary) pairs sorted by name."""
        return [(name, self._skills[name].description) for name in sorted(self._skills)]

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, name: str) -> bool:
        return name in self._skills
