"""Pytest fixtures for koro tests."""

import tempfile
from pathlib import Path

import pytest

from koro.agent.context import ContextAssembler
from koro.agent.dispatcher import RequestDispatcher
from koro.agent.executor import ActionExecutor
from koro.agent.gateway import ModelGateway
from koro.memory.lease import MemoryLease
from koro.memory.store import MemoryStore
from koro.providers.base import LLMResponse
from koro.skills.library import SkillLibrary

from helpers import ScriptedProvider

DEPLOY_SKILL = """---
description: Build and restart the service
rollback: Restore the previous release from backup
---

# Deploy

## Steps
1. Build the release
2. Restart the service
3. Check the health endpoint
"""


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir):
    return MemoryStore(temp_dir / "memory")


@pytest.fixture
def skills_dir(temp_dir):
    path = temp_dir / "skills"
    path.mkdir()
    (path / "deploy.md").write_text(DEPLOY_SKILL)
    return path


@pytest.fixture
def make_dispatcher(temp_dir, store, skills_dir):
    """Factory building a dispatcher around a scripted provider."""

    def _make(
        responses: list[LLMResponse | str] | None = None,
        lease_timeout: float = 5.0,
        step_timeout: float = 5.0,
        max_chars: int = 16000,
    ) -> RequestDispatcher:
        provider = ScriptedProvider(responses)
        skills = SkillLibrary(skills_dir)
        workspace = temp_dir / "workspace"
        workspace.mkdir(exist_ok=True)
        return RequestDispatcher(
            store=store,
            skills=skills,
            assembler=ContextAssembler(store, skills, max_chars=max_chars),
            gateway=ModelGateway(provider, timeout=5.0),
            executor=ActionExecutor(working_dir=workspace, timeout=step_timeout),
            lease=MemoryLease(timeout=lease_timeout),
        )

    return _make
