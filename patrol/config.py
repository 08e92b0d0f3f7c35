"""Patrol assistant configuration.

Includes:
- AppConfig: Main application settings with environment variable support
- GenerationSettings: Decoding settings for the generative model

Environment Variables:
    PATROL_PROJECT_PATH: Project directory path
    PATROL_BACKEND: Model server type ("ollama" or "vllm")
    PATROL_MODEL_NAME: Model served by the backend
    PATROL_OLLAMA_ENDPOINT: Ollama API endpoint URL
    PATROL_VLLM_ENDPOINT: vLLM API endpoint URL
    PATROL_TASK_API_ENDPOINT: Task service base URL
    PATROL_CONFIDENCE_THRESHOLD: Minimum confidence to create a task
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .core.backends.base import GenerationOptions

CONFIG_DIR = ".patrol"
CONFIG_FILE = "config.yaml"

# Fields persisted to config.yaml (project_path is implied by its location)
_FILE_FIELDS = (
    "backend",
    "model_name",
    "ollama_endpoint",
    "vllm_endpoint",
    "task_api_endpoint",
    "confidence_threshold",
    "scale_kilometers",
    "request_timeout",
)


class GenerationSettings(BaseModel):
    """Decoding settings for intent generation.

    Attributes:
        max_new_tokens: Upper bound on generated tokens
        temperature: Sampling temperature (near zero for stable JSON)
        repeat_penalty: Repetition penalty
        json_mode: Ask the server for JSON-constrained output
    """

    max_new_tokens: int = Field(default=256, gt=0)
    temperature: float = Field(default=0.01, ge=0.0)
    repeat_penalty: float = Field(default=1.1, gt=0.0)
    json_mode: bool = True

    def to_options(self) -> GenerationOptions:
        """Convert to the options object backends accept."""
        return GenerationOptions(
            max_tokens=self.max_new_tokens,
            temperature=self.temperature,
            repeat_penalty=self.repeat_penalty,
            json_mode=self.json_mode,
        )


class AppConfig(BaseSettings):
    """Application configuration with environment variable support.

    Configuration is loaded from environment variables with PATROL_ prefix.
    For example, PATROL_MODEL_NAME sets model_name. Nested generation
    settings use a double underscore: PATROL_GENERATION__TEMPERATURE.

    Precedence (highest to lowest):
        1. Environment variables (PATROL_*)
        2. Config file (.patrol/config.yaml)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="PATROL_",
        env_nested_delimiter="__",
        extra="ignore",
        protected_namespaces=(),  # Allow model_name field name
    )

    project_path: Path = Field(default_factory=Path.cwd)

    backend: Literal["ollama", "vllm"] = "ollama"
    model_name: str = "qwen2.5:0.5b"
    ollama_endpoint: str = "http://localhost:11434"
    vllm_endpoint: str = "http://localhost:8000"

    # Task service used by `patrol resolve --create`
    task_api_endpoint: str = "http://localhost:8080"
    request_timeout: float = Field(default=30.0, gt=0.0)

    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    scale_kilometers: bool = False

    @property
    def config_file(self) -> Path:
        """Location of the project's config.yaml."""
        return self.project_path / CONFIG_DIR / CONFIG_FILE

    @classmethod
    def load(cls, path: Path) -> "AppConfig":
        """Load configuration from .patrol/config.yaml if it exists.

        Values from the file only apply where no PATROL_* environment
        variable is set.

        Args:
            path: Project path to load configuration for

        Returns:
            AppConfig with file values applied (or defaults if no config exists)
        """
        from ruamel.yaml import YAML

        config = cls(project_path=path)
        if not config.config_file.exists():
            return config

        yaml = YAML()
        with config.config_file.open(encoding="utf-8") as f:
            data = yaml.load(f)

        if not data:
            return config

        explicit = config.model_fields_set
        values = {
            name: data[name]
            for name in _FILE_FIELDS
            if name in data and name not in explicit
        }
        if "generation" in data and "generation" not in explicit:
            values["generation"] = GenerationSettings(**dict(data["generation"]))

        return cls(**{**config.model_dump(include=explicit), **values})

    def save(self) -> None:
        """Save configuration to .patrol/config.yaml in the project path."""
        from ruamel.yaml import YAML

        config_file = self.config_file
        config_file.parent.mkdir(parents=True, exist_ok=True)

        yaml = YAML()
        yaml.default_flow_style = False

        data = {name: getattr(self, name) for name in _FILE_FIELDS}
        data["generation"] = self.generation.model_dump()

        with config_file.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)


__all__ = ["AppConfig", "GenerationSettings"]
