"""Workspace skills: ``skills/<name>/SKILL.md`` files and the tools that manage them."""

from __future__ import annotations

import json
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from loguru import logger

from ..errors import ToolError
from .base import Tool, TurnContext

SKILL_FILE = "SKILL.md"

_VALID_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


@dataclass(frozen=True)
class Skill:
    """A skill's metadata as declared in its SKILL.md frontmatter."""

    name: str
    description: str
    path: Path


def _split_frontmatter(raw: str) -> tuple[dict[str, str], str]:
    """Split ``---``-delimited frontmatter from the body. Only ``key: value`` lines are read."""
    if not raw.startswith("---"):
        return {}, raw
    parts = raw.split("---", 2)
    if len(parts) < 3:
        return {}, raw

    meta: dict[str, str] = {}
    for line in parts[1].strip().splitlines():
        key, sep, value = line.partition(":")
        if sep:
            meta[key.strip()] = value.strip().strip("\"'")
    return meta, parts[2].strip()


class SkillManager:
    """Create, list, read and delete skills under ``<workspace>/skills``."""

    def __init__(self, workspace: str | Path) -> None:
        self._skills_dir = Path(workspace).expanduser() / "skills"

    @property
    def skills_dir(self) -> Path:
        return self._skills_dir

    def _skill_dir(self, name: str) -> Path:
        name = name.strip()
        if not _VALID_NAME.match(name):
            raise ToolError(f"invalid skill name: {name!r} (use letters, digits, '-' or '_')")
        return self._skills_dir / name

    def create(self, name: str, description: str, content: str) -> Path:
        """Write ``skills/<name>/SKILL.md``, replacing any existing skill of that name."""
        skill_dir = self._skill_dir(name)
        skill_dir.mkdir(parents=True, exist_ok=True)
        path = skill_dir / SKILL_FILE
        description = " ".join(description.split())
        path.write_text(
            f"---\nname: {name.strip()}\ndescription: {description}\n---\n\n{content.strip()}\n",
            encoding="utf-8",
        )
        logger.info(f"Created skill {name.strip()}")
        return path

    def list_skills(self) -> list[Skill]:
        """All skills with a readable SKILL.md, sorted by directory name."""
        if not self._skills_dir.is_dir():
            return []

        skills: list[Skill] = []
        for skill_dir in sorted(self._skills_dir.iterdir()):
            path = skill_dir / SKILL_FILE
            if not skill_dir.is_dir() or not path.is_file():
                continue
            try:
                raw = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning(f"Failed to read {path}: {e}")
                continue

            meta, body = _split_frontmatter(raw)
            description = meta.get("description", "")
            if not description:
                first_para = body.split("\n\n")[0].replace("\n", " ").strip()
                description = first_para[:200] or f"Skill: {skill_dir.name}"
            skills.append(
                Skill(name=meta.get("name") or skill_dir.name, description=description, path=skill_dir)
            )
        return skills

    def read(self, name: str) -> str:
        """The full SKILL.md text, frontmatter included."""
        path = self._skill_dir(name) / SKILL_FILE
        if not path.is_file():
            raise ToolError(f"skill not found: {name}")
        return path.read_text(encoding="utf-8", errors="replace")

    def delete(self, name: str) -> None:
        skill_dir = self._skill_dir(name)
        if not skill_dir.is_dir():
            raise ToolError(f"skill not found: {name}")
        shutil.rmtree(skill_dir)
        logger.info(f"Deleted skill {name}")

    def get_summary(self) -> str:
        """One line per skill for the system prompt, or "" when there are none."""
        skills = self.list_skills()
        if not skills:
            return ""
        lines = ["Available skills (use read_skill to load one when it applies):"]
        lines.extend(f'  <skill name="{s.name}">{s.description}</skill>' for s in skills)
        return "\n".join(lines)


class _SkillTool(Tool):
    def __init__(self, manager: SkillManager) -> None:
        self._manager = manager

    @staticmethod
    def _name_schema(description: str) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"name": {"type": "string", "description": description}},
            "required": ["name"],
        }


class CreateSkillTool(_SkillTool):
    @property
    def name(self) -> str:
        return "create_skill"

    @property
    def description(self) -> str:
        return "Create a new skill in the skills directory with markdown content"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "name": {
                    "type": "string",
                    "description": "The skill name (letters, digits, '-' or '_')",
                },
                "description": {
                    "type": "string",
                    "description": "Brief description of what the skill does",
                },
                "content": {
                    "type": "string",
                    "description": "The markdown content for the skill (instructions, examples, etc.)",
                },
            },
            "required": ["name", "description", "content"],
        }

    async def execute(
        self,
        context: TurnContext,
        name: str = "",
        description: str = "",
        content: str = "",
        **kwargs: Any,
    ) -> str:
        if not content.strip():
            raise ToolError("create_skill: 'content' must not be empty")
        self._manager.create(name, description, content)
        return f"Skill '{name.strip()}' created successfully"


class ListSkillsTool(_SkillTool):
    @property
    def name(self) -> str:
        return "list_skills"

    @property
    def description(self) -> str:
        return "List all available skills with their names and descriptions"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, context: TurnContext, **kwargs: Any) -> str:
        skills = self._manager.list_skills()
        if not skills:
            return "No skills found"
        return json.dumps(
            [{"name": s.name, "description": s.description} for s in skills], indent=2
        )


class ReadSkillTool(_SkillTool):
    @property
    def name(self) -> str:
        return "read_skill"

    @property
    def description(self) -> str:
        return "Read the full content of a skill by name"

    @property
    def parameters(self) -> dict[str, Any]:
        return self._name_schema("The name of the skill to read")

    async def execute(self, context: TurnContext, name: str = "", **kwargs: Any) -> str:
        return self._manager.read(name)


class DeleteSkillTool(_SkillTool):
    @property
    def name(self) -> str:
        return "delete_skill"

    @property
    def description(self) -> str:
        return "Delete a skill from the skills directory"

    @property
    def parameters(self) -> dict[str, Any]:
        return self._name_schema("The name of the skill to delete")

    async def execute(self, context: TurnContext, name: str = "", **kwargs: Any) -> str:
        self._manager.delete(name)
        return f"Skill '{name.strip()}' deleted successfully"
