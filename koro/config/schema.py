"""Configuration schema using Pydantic."""

import json
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

logger = structlog.get_logger(__name__)


class ProviderConfig(BaseModel):
    """LLM provider configuration."""

    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(BaseModel):
    """LLM providers configuration."""

    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)


class AgentConfig(BaseModel):
    """Agent configuration."""

    name: str = "koro"
    home: str = "~/.koro"
    provider: str = ""
    model: str = ""
    max_tokens: int = 4096
    model_timeout: float = 120.0


class ApiConfig(BaseModel):
    """Inbound endpoint configuration."""

    host: str = "127.0.0.1"
    port: int = 3000


class MemoryConfig(BaseModel):
    """Memory store configuration."""

    base_dir: str = ""  # Defaults to <home>/memory
    lease_timeout: float = 30.0


class ContextConfig(BaseModel):
    """Prompt context budget."""

    max_chars: int = 16000
    max_log_excerpts: int = 20
    excerpt_window_days: int = 7


class ExecutorConfig(BaseModel):
    """Shell action execution limits."""

    step_timeout: float = 60.0
    max_output_chars: int = 4000
    working_dir: str = ""  # Defaults to <home>/workspace


class LoggingConfig(BaseModel):
    """Logging output."""

    level: str = "INFO"
    format: str = "console"  # "console" or "json"


class Config(BaseModel):
    """Root configuration."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_path(self) -> Path:
        """Get expanded home directory."""
        return Path(self.agent.home).expanduser()

    @property
    def memory_path(self) -> Path:
        if self.memory.base_dir:
            return Path(self.memory.base_dir).expanduser()
        return self.home_path / "memory"

    @property
    def skills_path(self) -> Path:
        return self.home_path / "skills"

    @property
    def workspace_path(self) -> Path:
        if self.executor.working_dir:
            return Path(self.executor.working_dir).expanduser()
        return self.home_path / "workspace"

    def get_provider_config(self) -> ProviderConfig | None:
        """Get the ProviderConfig for the active provider."""
        p = self.agent.provider
        if p == "openai":
            return self.providers.openai
        elif p == "anthropic":
            return self.providers.anthropic
        return None

    def get_api_key(self) -> str | None:
        """Get API key based on active provider."""
        provider_config = self.get_provider_config()
        if provider_config is None:
            return None
        return provider_config.api_key or None

    def get_api_base(self) -> str | None:
        """Get API base URL based on active provider."""
        p = self.agent.provider
        if p == "openai":
            return self.providers.openai.api_base
        elif p == "anthropic":
            return self.providers.anthropic.api_base or "https://api.anthropic.com"
        return None


def get_config_path() -> Path:
    """Get the config file path."""
    return Path.home() / ".koro" / "config.json"


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file, falling back to defaults."""
    config_path = path or get_config_path()

    if config_path.exists():
        try:
            data = json.loads(config_path.read_text())
            return Config(**data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("config.load_failed", path=str(config_path), error=str(e))

    return Config()


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(config.model_dump_json(indent=2))
