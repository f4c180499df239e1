"""Declarative skill definitions."""

from koro.skills.library import SkillDefinition, SkillLibrary, parse_skill_document

__all__ = ["SkillDefinition", "SkillLibrary", "parse_skill_document"]
