"""
CRM RAG Configuration Module
============================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    OPENAI_API_KEY: OpenAI key for embeddings (GPT_API_KEY also accepted)
    EMBEDDING_MODEL: Embedding model (default: text-embedding-3-small)
    EMBEDDING_DIMENSIONS: Vector size (default: 1536)
    EMBEDDING_BATCH_SIZE: Texts per embedding request (default: 100)

    LLM_PROVIDER: anthropic or openai (default: auto-detect from keys)
    ANTHROPIC_API_KEY: Anthropic key for answer generation
    GENERATION_MODEL: Model override (default depends on provider)
    GENERATION_MAX_TOKENS: Max answer tokens (default: 1024)
    GENERATION_TEMPERATURE: Sampling temperature (default: 0.3)

    LLM_TIMEOUT: Provider request timeout in seconds (default: 60)
    LLM_MAX_RETRIES: SDK-level retries for provider calls (default: 0)

    CONNECTOR_TIMEOUT: REST data source timeout in seconds (default: 30)

    CHROMA_DB_PATH: Local persistent Chroma directory (default: ./data/chromadb)
    CHROMA_HOST: Remote Chroma server host; takes precedence over the path
    CHROMA_PORT: Remote Chroma server port (default: 8000)
    COLLECTION_NAME: Collection holding CRM documents (default: bankin_crm_data)

    HOST / PORT: API bind address (default: 0.0.0.0:3000)
    ENVIRONMENT: development, production or test (default: development)
    CORS_ORIGINS: Extra comma-separated CORS origins

    LOG_LEVEL / LOG_JSON / LOG_FILE: Logging output
    LOG_MAX_BYTES / LOG_BACKUP_COUNT: Log file rotation (default: 10 MB, 5 files)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class EmbeddingConfig:
    """OpenAI embeddings configuration."""

    # Support both OPENAI_API_KEY and GPT_API_KEY
    api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    model: str = field(default_factory=lambda: get_env("EMBEDDING_MODEL", "text-embedding-3-small"))
    dimensions: int = field(default_factory=lambda: get_env_int("EMBEDDING_DIMENSIONS", 1536))
    batch_size: int = field(default_factory=lambda: get_env_int("EMBEDDING_BATCH_SIZE", 100))

    request_timeout: float = field(default_factory=lambda: get_env_float("LLM_TIMEOUT", 60.0))
    max_retries: int = field(default_factory=lambda: get_env_int("LLM_MAX_RETRIES", 0))

    def __post_init__(self):
        if self.dimensions <= 0:
            raise ValueError("dimensions must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")


@dataclass
class GenerationConfig:
    """Answer generation (LLM) configuration."""

    provider: Optional[str] = field(default_factory=lambda: get_env("LLM_PROVIDER"))
    anthropic_api_key: Optional[str] = field(default_factory=lambda: get_env("ANTHROPIC_API_KEY"))
    openai_api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    model: Optional[str] = field(default_factory=lambda: get_env("GENERATION_MODEL"))
    max_tokens: int = field(default_factory=lambda: get_env_int("GENERATION_MAX_TOKENS", 1024))
    temperature: float = field(default_factory=lambda: get_env_float("GENERATION_TEMPERATURE", 0.3))

    request_timeout: float = field(default_factory=lambda: get_env_float("LLM_TIMEOUT", 60.0))
    max_retries: int = field(default_factory=lambda: get_env_int("LLM_MAX_RETRIES", 0))

    def __post_init__(self):
        if self.provider and self.provider not in ("anthropic", "openai"):
            raise ValueError(f"LLM_PROVIDER must be 'anthropic' or 'openai', got: {self.provider}")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be positive")
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative")


@dataclass
class ConnectorConfig:
    """CRM data source (file / REST) configuration."""

    request_timeout: float = field(default_factory=lambda: get_env_float("CONNECTOR_TIMEOUT", 30.0))

    def __post_init__(self):
        if self.request_timeout <= 0:
            raise ValueError("CONNECTOR_TIMEOUT must be positive")


@dataclass
class VectorStoreConfig:
    """ChromaDB configuration."""

    path: Optional[str] = field(default_factory=lambda: get_env("CHROMA_DB_PATH", "./data/chromadb"))
    host: Optional[str] = field(default_factory=lambda: get_env("CHROMA_HOST"))
    port: int = field(default_factory=lambda: get_env_int("CHROMA_PORT", 8000))
    collection_name: str = field(default_factory=lambda: get_env("COLLECTION_NAME", "bankin_crm_data"))

    def __post_init__(self):
        if not self.collection_name:
            raise ValueError("COLLECTION_NAME cannot be empty")


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = field(default_factory=lambda: get_env("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: get_env_int("PORT", 3000))
    environment: str = field(default_factory=lambda: get_env("ENVIRONMENT", "development"))
    cors_origins: List[str] = field(default_factory=lambda: [
        origin.strip() for origin in get_env("CORS_ORIGINS", "").split(",") if origin.strip()
    ])

    def __post_init__(self):
        if self.environment not in ("development", "production", "test"):
            raise ValueError(
                f"ENVIRONMENT must be development, production or test, got: {self.environment}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))
    max_bytes: int = field(default_factory=lambda: get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))
    backup_count: int = field(default_factory=lambda: get_env_int("LOG_BACKUP_COUNT", 5))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))

    def __post_init__(self):
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be DEBUG, INFO, WARNING, ERROR or CRITICAL, got: {self.level}")
        if self.max_bytes <= 0:
            raise ValueError("LOG_MAX_BYTES must be positive")
        if self.backup_count < 0:
            raise ValueError("LOG_BACKUP_COUNT cannot be negative")



@dataclass
class Settings:
    """Main application settings container."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    vector_store: VectorStoreConfig = field(default_factory=VectorStoreConfig)
    connector: ConnectorConfig = field(default_factory=ConnectorConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    app_name: str = "crm-rag"
    app_version: str = "0.1.0"

    def is_production(self) -> bool:
        return self.server.environment == "production"

    def is_development(self) -> bool:
        return self.server.environment == "development"


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the process-wide settings, loading them on first use.

    Raises:
        ValueError: If configuration is invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
