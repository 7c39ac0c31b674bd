"""Configuration management using Pydantic for validation."""

from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Aggressiveness = Literal["conservative", "balanced", "obsessive"]


class LLMConfig(BaseSettings):
    """LLM configuration."""

    provider: Literal["openai", "anthropic"] = "anthropic"
    model: str = "claude-3-5-haiku-20241022"
    temperature: float = 0.1
    max_tokens: int = 8192
    timeout: int = 60
    retry_attempts: int = 1
    base_url: str | None = None

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature is between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("Temperature must be between 0 and 1")
        return v


class ExtractionConfig(BaseSettings):
    """Extraction pipeline defaults (overridable per campaign)."""

    aggressiveness: Aggressiveness = "obsessive"
    chunk_size: int = Field(default=6000, ge=1)
    confidence_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    enable_relationships: bool = True
    enable_auto_merge: bool = False
    max_chunks: int = Field(default=15, ge=1)
    parallel_batch_size: int = Field(default=3, ge=1)
    chunk_timeout: float = Field(default=20.0, gt=0)
    pipeline_timeout: float = Field(default=45.0, gt=0)
    prompts_file: str = "config/extraction_prompts.yaml"


class StreamingConfig(BaseSettings):
    """Overrides applied by the interactive upload stream."""

    max_chunks: int = Field(default=6, ge=1)
    parallel_batch_size: int = Field(default=1, ge=1)
    pipeline_timeout: float = Field(default=45.0, gt=0)


class VisibilityConfig(BaseSettings):
    """Default visibility of newly created entities."""

    default_dm_only: bool = False
    dm_only_entity_types: List[str] = Field(default_factory=list)


class GraphConfig(BaseSettings):
    """Graph visualization configuration."""

    default_depth: int = Field(default=2, ge=0)
    max_nodes: int = Field(default=500, ge=1)
    show_link_labels: Literal["always", "on-hover", "never"] = "on-hover"


class PromptsConfig(BaseSettings):
    """Per-campaign prompt overrides (None means use the YAML default)."""

    extraction_conservative_prompt: str | None = None
    extraction_balanced_prompt: str | None = None
    extraction_obsessive_prompt: str | None = None


class CurationConfig(BaseSettings):
    """Review/commit configuration."""

    staged_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    excerpt_length: int = 300
    source_excerpt_length: int = 500
    merge_source_confidence: float = 0.9
    index_timeout: float = Field(default=30.0, gt=0)


class IndexingConfig(BaseSettings):
    """Entity search index configuration."""

    enabled: bool = True
    collection_name: str = "entity_chunks"
    target_chunk_size: int = 1000
    chunk_overlap: int = 100


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    file: str = "logs/lorekeeper.log"
    rotation: str = "10 MB"
    retention: str = "1 week"


class DatabaseConfig(BaseSettings):
    """Database configuration from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    # Neo4j
    neo4j_uri: str = Field(default="bolt://localhost:7687")
    neo4j_user: str = Field(default="neo4j")
    neo4j_password: str = Field(default="lorekeeper")
    neo4j_database: str = Field(default="neo4j")

    # Qdrant
    # If set (e.g. ":memory:"), QdrantClient will use local/in-memory mode and no server is required.
    qdrant_location: str = Field(default="")
    qdrant_host: str = Field(default="localhost")
    qdrant_port: int = Field(default=6333)
    qdrant_api_key: str = Field(default="")

    # Embedding
    embedding_model: str = Field(default="BAAI/bge-small-en-v1.5")
    embedding_dimension: int = Field(default=384)
    embedding_batch_size: int = Field(default=32)


class WorkspaceSettings(BaseModel):
    """Effective settings for one campaign (defaults merged with its overrides)."""

    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    visibility: VisibilityConfig = Field(default_factory=VisibilityConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)


def resolve_settings(
    defaults: WorkspaceSettings, overrides: Mapping[str, Any] | None
) -> WorkspaceSettings:
    """Merge per-campaign overrides onto defaults, section by section.

    Keys missing from a section keep their default. Neither argument is mutated.
    """
    if not overrides:
        return defaults.model_copy(deep=True)

    merged: Dict[str, Any] = {}
    for section in WorkspaceSettings.model_fields:
        base = getattr(defaults, section).model_dump()
        section_overrides = overrides.get(section) or {}
        if not isinstance(section_overrides, Mapping):
            raise ValueError(f"Settings section '{section}' must be a mapping")
        merged[section] = {**base, **{k: v for k, v in section_overrides.items() if v is not None}}
    return WorkspaceSettings.model_validate(merged)


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    # Configuration sections
    llm: LLMConfig = Field(default_factory=LLMConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    visibility: VisibilityConfig = Field(default_factory=VisibilityConfig)
    graph: GraphConfig = Field(default_factory=GraphConfig)
    curation: CurationConfig = Field(default_factory=CurationConfig)
    indexing: IndexingConfig = Field(default_factory=IndexingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Environment variables
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    @staticmethod
    def _deep_merge_dict(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge two dicts (overrides win).

        This is used to apply environment-derived overrides on top of YAML defaults.
        """
        merged: Dict[str, Any] = dict(base)
        for key, value in overrides.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = Config._deep_merge_dict(merged[key], value)
            else:
                merged[key] = value
        return merged

    @classmethod
    def from_yaml(cls, yaml_path: str | Path = "config/config.yaml") -> "Config":
        """Load configuration from YAML file and environment variables.

        Precedence (highest to lowest):
        1) Environment variables / .env
        2) YAML file
        3) Model defaults

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML file is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path) as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ValueError(f"YAML config root must be a mapping/dict: {yaml_path}")

        # Nested BaseSettings (like DatabaseConfig) do NOT pick up plain env vars
        # (e.g. NEO4J_PASSWORD) via the parent model, so compute them separately.
        env_overrides = cls().model_dump(exclude_defaults=True)

        db_env_overrides = DatabaseConfig().model_dump(exclude_defaults=True)
        if db_env_overrides:
            env_overrides["database"] = cls._deep_merge_dict(
                (
                    yaml_config.get("database", {})
                    if isinstance(yaml_config.get("database", {}), dict)
                    else {}
                ),
                db_env_overrides,
            )

        merged = cls._deep_merge_dict(yaml_config, env_overrides)

        return cls(**merged)

    def workspace_defaults(self) -> WorkspaceSettings:
        """Global defaults that per-campaign overrides are merged onto."""
        return WorkspaceSettings(
            extraction=self.extraction.model_copy(deep=True),
            visibility=self.visibility.model_copy(deep=True),
            graph=self.graph.model_copy(deep=True),
        )

    def validate_config(self) -> None:
        """Validate configuration settings.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.llm.provider == "anthropic" and not self.anthropic_api_key:
            raise ValueError("Anthropic API key required when using anthropic provider")
        if self.llm.provider == "openai" and not self.openai_api_key and not self.llm.base_url:
            raise ValueError("OpenAI API key required when using openai provider")

        valid_dimensions = {
            "BAAI/bge-small-en-v1.5": 384,
            "BAAI/bge-base-en-v1.5": 768,
            "BAAI/bge-large-en-v1.5": 1024,
        }
        if self.database.embedding_model in valid_dimensions:
            expected_dim = valid_dimensions[self.database.embedding_model]
            if self.database.embedding_dimension != expected_dim:
                raise ValueError(
                    f"Embedding dimension mismatch: {self.database.embedding_model} "
                    f"requires {expected_dim} dimensions, got {self.database.embedding_dimension}"
                )


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get or create global configuration instance.

    Returns:
        Global Config instance

    Raises:
        RuntimeError: If configuration hasn't been initialized
    """
    global _config
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call load_config() first.")
    return _config


def load_config(yaml_path: str | Path = "config/config.yaml", *, validate: bool = True) -> Config:
    """Load and validate configuration.

    Args:
        yaml_path: Path to YAML configuration file
        validate: Run provider/embedding checks after loading

    Returns:
        Loaded and validated Config instance
    """
    global _config
    _config = Config.from_yaml(yaml_path)
    if validate:
        _config.validate_config()
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
