"""Configuration management for Query Scout."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


# Paths
DEFAULT_CONFIG_PATH = Path("~/.query-scout/config.yaml").expanduser()
DEFAULT_MEMORY_PATH = Path("~/.query-scout/memory.db").expanduser()
LOCAL_CONFIG_FILENAME = "config.yaml"

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_DEFAULT_MODEL = "meta-llama/llama-3.2-3b-instruct:free"


class ModelConfig(BaseModel):
    """Generative service configuration."""

    provider: str = "openrouter"
    model: str = OPENROUTER_DEFAULT_MODEL
    temperature: float = 0.2
    max_tokens: int = 4096
    api_key: str = ""
    base_url: str = OPENROUTER_BASE_URL
    timeout: float = 120.0


class GenerationConfig(BaseModel):
    """Step budgets for orchestrated conversations."""

    max_steps: int = Field(default=10, gt=0)
    explain_max_steps: int = Field(default=6, gt=0)


class DatabaseConfig(BaseModel):
    """Target database configuration.

    ``attach`` maps extra namespace names to database files; the main file is
    always exposed as the ``main`` namespace.
    """

    path: str = "./database.db"
    attach: dict[str, str] = Field(default_factory=dict)
    read_only: bool = True
    max_rows: int = Field(default=500, gt=0)


class MemoryConfig(BaseModel):
    """Persistent memory store configuration."""

    path: str = str(DEFAULT_MEMORY_PATH)


class ToolsConfig(BaseModel):
    """Tools configuration."""

    timeout: float = 30.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for Query Scout."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="QSCOUT_",
        env_file=".env",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Environment beats the YAML values passed in as init kwargs."""
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML; QSCOUT_ env vars override file values."""
        return cls.from_yaml(path)

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
