"""Tests for configuration schema."""

import json
from pathlib import Path
from unittest.mock import patch

from koro.config.schema import (
    AgentConfig,
    Config,
    ProviderConfig,
    get_config_path,
    load_config,
    save_config,
)


class TestProviderConfig:
    def test_default_values(self):
        config = ProviderConfig()
        assert config.api_key == ""
        assert config.api_base is None


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.agent.name == "koro"
        assert config.api.port == 3000
        assert config.memory.lease_timeout == 30.0
        assert config.context.max_chars == 16000

    def test_derived_paths(self):
        config = Config(agent=AgentConfig(home="/srv/koro"))
        assert config.home_path == Path("/srv/koro")
        assert config.memory_path == Path("/srv/koro/memory")
        assert config.skills_path == Path("/srv/koro/skills")
        assert config.workspace_path == Path("/srv/koro/workspace")

    def test_path_overrides(self):
        config = Config.model_validate({
            "agent": {"home": "/srv/koro"},
            "memory": {"base_dir": "/data/mem"},
            "executor": {"working_dir": "/tmp/work"},
        })
        assert config.memory_path == Path("/data/mem")
        assert config.workspace_path == Path("/tmp/work")

    def test_api_key_for_active_provider(self):
        config = Config()
        assert config.get_api_key() is None

        config.agent.provider = "openai"
        config.providers.openai.api_key = "sk-test"
        assert config.get_api_key() == "sk-test"
        assert config.get_api_base() is None

        config.agent.provider = "anthropic"
        assert config.get_api_key() is None
        assert config.get_api_base() == "https://api.anthropic.com"


class TestLoadSave:
    def test_config_path(self):
        with patch.object(Path, "home", return_value=Path("/home/sam")):
            assert get_config_path() == Path("/home/sam/.koro/config.json")

    def test_missing_file_gives_defaults(self, temp_dir):
        config = load_config(temp_dir / "nope.json")
        assert config.agent.provider == ""

    def test_round_trip(self, temp_dir):
        path = temp_dir / "sub" / "config.json"
        config = Config()
        config.agent.provider = "anthropic"
        config.context.max_chars = 8000
        save_config(config, path)

        data = json.loads(path.read_text())
        assert data["agent"]["provider"] == "anthropic"
        assert load_config(path).context.max_chars == 8000

    def test_invalid_file_gives_defaults(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{not json")
        assert load_config(path) == Config()

        path.write_text(json.dumps({"api": {"port": "not-a-port"}}))
        assert load_config(path).api.port == 3000
