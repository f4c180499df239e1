"""Tests for the koro CLI commands."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from typer.testing import CliRunner

from koro import __version__
from koro.cli.main import app

from helpers import ScriptedProvider, reply_json

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging():
    with patch("koro.logging.setup_logging"):
        yield


@pytest.fixture
def home(temp_dir, monkeypatch):
    monkeypatch.setenv("HOME", str(temp_dir))
    return temp_dir / ".koro"


def _configure(home, provider="openai", key="sk-test"):
    home.mkdir(parents=True, exist_ok=True)
    (home / "config.json").write_text(json.dumps({
        "agent": {"provider": provider},
        "providers": {provider: {"api_key": key}},
    }))


class TestInit:
    def test_creates_layout(self, home):
        result = runner.invoke(app, ["init", "--provider", "anthropic"])

        assert result.exit_code == 0
        config = json.loads((home / "config.json").read_text())
        assert config["agent"]["provider"] == "anthropic"
        assert (home / "memory" / "core" / "identity.md").read_text().startswith("# Identity")
        assert (home / "memory" / "logs" / "daily").is_dir()
        assert (home / "memory" / "logs" / "weekly").is_dir()
        assert (home / "memory" / "logs" / "monthly").is_dir()
        assert (home / "skills" / "disk_report.md").exists()
        assert (home / "workspace").is_dir()

    def test_keeps_existing_documents(self, home):
        core = home / "memory" / "core"
        core.mkdir(parents=True)
        (core / "user.md").write_text("Name: Sam")

        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert (core / "user.md").read_text() == "Name: Sam"

    def test_unknown_provider(self, home):
        result = runner.invoke(app, ["init", "--provider", "gemini"])
        assert result.exit_code == 1
        assert not (home / "config.json").exists()


class TestStatus:
    def test_before_init(self, home):
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "koro init" in result.output

    def test_after_init(self, home):
        _configure(home)
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "openai" in result.output
        assert "configured" in result.output


class TestChat:
    def test_requires_api_key(self, home):
        result = runner.invoke(app, ["chat", "-m", "hi"])
        assert result.exit_code == 1
        assert "No API key" in result.output

    def test_handles_message(self, home):
        _configure(home)
        provider = ScriptedProvider([reply_json("Hello from koro")])
        with patch("koro.cli.main.create_provider", return_value=provider):
            result = runner.invoke(app, ["chat", "-m", "hi"])

        assert result.exit_code == 0
        assert "Hello from koro" in result.output
        assert list((home / "memory" / "logs" / "daily").glob("*.jsonl"))


class TestConsolidate:
    def test_posts_instruction(self, home):
        response = MagicMock(status_code=200)
        response.json.return_value = {"text": "Consolidated 3 records from 2026-10-18.", "actions": []}
        with patch("koro.cli.main.httpx.post", return_value=response) as post:
            result = runner.invoke(app, ["consolidate", "--date", "2026-10-18"])

        assert result.exit_code == 0
        assert "Consolidated 3 records" in result.output
        assert post.call_args.args[0] == "http://127.0.0.1:3000/message"
        assert post.call_args.kwargs["json"] == {"text": "/consolidate 2026-10-18"}

    def test_server_unreachable(self, home):
        with patch("koro.cli.main.httpx.post", side_effect=httpx.ConnectError("refused")):
            result = runner.invoke(app, ["consolidate", "--url", "http://localhost:9"])
        assert result.exit_code == 1
        assert "Could not reach" in result.output

    def test_non_json_response(self, home):
        response = MagicMock(status_code=502)
        response.json.side_effect = ValueError("Expecting value")
        with patch("koro.cli.main.httpx.post", return_value=response):
            result = runner.invoke(app, ["consolidate"])
        assert result.exit_code == 1
        assert "Unexpected response" in result.output
        assert "502" in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
