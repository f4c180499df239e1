"""Tests for the skill library."""

import pytest

from koro.errors import SkillNotFound
from koro.skills.library import SkillLibrary, parse_skill_document


class TestParseSkillDocument:
    def test_frontmatter_and_steps(self, skills_dir):
        skill = parse_skill_document(skills_dir / "deploy.md", "deploy")
        assert skill.name == "deploy"
        assert skill.description == "Build and restart the service"
        assert skill.steps == (
            "Build the release",
            "Restart the service",
            "Check the health endpoint",
        )
        assert skill.rollback == "Restore the previous release from backup"

    def test_rollback_section(self, temp_dir):
        path = temp_dir / "backup.md"
        path.write_text(
            "# Backup\n\nCopy the notes somewhere safe.\n\n"
            "## Steps\n- Archive notes\n- Upload archive\n\n"
            "## Rollback\n- Delete the partial archive\n"
        )
        skill = parse_skill_document(path, "backup")
        assert skill.description == "Copy the notes somewhere safe."
        assert skill.steps == ("Archive notes", "Upload archive")
        assert skill.rollback == "Delete the partial archive"

    def test_no_rollback(self, temp_dir):
        path = temp_dir / "hello.md"
        path.write_text("## Steps\n1. Say hello\n")
        skill = parse_skill_document(path, "hello")
        assert skill.rollback is None

    def test_no_steps_is_rejected(self, temp_dir):
        path = temp_dir / "empty.md"
        path.write_text("# Empty\n\nNothing to do.\n")
        assert parse_skill_document(path, "empty") is None


class TestSkillLibrary:
    def test_load_and_resolve(self, skills_dir):
        lib = SkillLibrary(skills_dir)
        assert len(lib) == 1
        assert "deploy" in lib
        assert lib.resolve("deploy").steps[0] == "Build the release"

    def test_resolve_unknown(self, skills_dir):
        lib = SkillLibrary(skills_dir)
        with pytest.raises(SkillNotFound) as exc:
            lib.resolve("backup-notes")
        assert exc.value.code == "skill_not_found"
        assert "backup-notes" in exc.value.message

    def test_directory_layout(self, skills_dir):
        (skills_dir / "report").mkdir()
        (skills_dir / "report" / "SKILL.md").write_text(
            "---\ndescription: Disk report\n---\n## Steps\n1. Check disk usage\n"
        )
        lib = SkillLibrary(skills_dir)
        assert lib.list() == [
            ("deploy", "Build and restart the service"),
            ("report", "Disk report"),
        ]

    def test_missing_directory(self, temp_dir):
        lib = SkillLibrary(temp_dir / "nope")
        assert len(lib) == 0
        assert lib.list() == []

    def test_reload_picks_up_changes(self, skills_dir):
        lib = SkillLibrary(skills_dir)
        (skills_dir / "hello.md").write_text("## Steps\n1. Say hello\n")
        assert "hello" not in lib
        assert lib.reload() == 2
        assert "hello" in lib

    def test_duplicate_name_keeps_first(self, skills_dir):
        (skills_dir / "zz.md").write_text("---\nname: deploy\n---\n## Steps\n1. Other\n")
        lib = SkillLibrary(skills_dir)
        assert len(lib) == 1
        assert lib.resolve("deploy").steps[0] == "Build the release"

    def test_invalid_skill_skipped(self, skills_dir):
        (skills_dir / "broken.md").write_text("no steps here")
        lib = SkillLibrary(skills_dir)
        assert "broken" not in lib
        assert "deploy" in lib
