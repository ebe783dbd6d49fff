"""
Application configuration.

'load_config()' reads the environment once at process start and returns an
'AppConfig'. The config object is then passed explicitly to the builders
below and to 'create_app'; nothing in the package reads the environment
after startup.

Secrets are looked up in '/secrets/<NAME>' first and in the '<NAME>'
environment variable second.

Environment variables
---------------------
EMBEDDING_BACKEND  'openai' (default) or 'sentence-transformers'
EMBEDDING_MODEL    model name, defaults per backend
EMBEDDING_SIZE     vector dimensionality, defaults per backend (1536 for OpenAI)
OPENAI_KEY         OpenAI API key (OPENAI_API_KEY is accepted as well)
STORAGE_BACKEND    'memory' (default) or 'postgres'
DATABASE_URL       PostgreSQL DSN, required for the postgres backend
CONTEXT_RADIUS     messages on each side of a match, default 2
LOG_LEVEL          loguru level, default INFO
HOST, PORT         bind address of the HTTP server
"""

import os
import sys
from pathlib import Path
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field, SecretStr, ValidationError

from conversation_search.embeddings.base import EmbeddingsModel
from conversation_search.errors import ConfigurationError

SECRETS_DIR = Path("/secrets")

EmbeddingBackend = Literal["openai", "sentence-transformers"]
StorageBackend = Literal["memory", "postgres"]


class AppConfig(BaseModel):
    embedding_backend: EmbeddingBackend = "openai"
    embedding_model: str | None = None
    embedding_size: int | None = None
    openai_api_key: SecretStr | None = None
    storage_backend: StorageBackend = "memory"
    database_url: SecretStr | None = None
    context_radius: int = Field(default=2, ge=0)
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000


def _get_secret(name: str, secrets_dir: Path = SECRETS_DIR) -> str | None:
    secret_file = secrets_dir / name
    if secret_file.exists():
        return secret_file.read_text().strip()
    return os.environ.get(name) or None


def load_config(secrets_dir: Path = SECRETS_DIR) -> AppConfig:
    """Build an 'AppConfig' from secret files and environment variables."""
    values: dict[str, object] = {
        "embedding_backend": os.environ.get("EMBEDDING_BACKEND", "openai").lower().strip(),
        "embedding_model": os.environ.get("EMBEDDING_MODEL") or None,
        "embedding_size": os.environ.get("EMBEDDING_SIZE") or None,
        "openai_api_key": _get_secret("OPENAI_KEY", secrets_dir) or _get_secret("OPENAI_API_KEY", secrets_dir),
        "storage_backend": os.environ.get("STORAGE_BACKEND", "memory").lower().strip(),
        "database_url": _get_secret("DATABASE_URL", secrets_dir),
        "context_radius": os.environ.get("CONTEXT_RADIUS", "2"),
        "log_level": os.environ.get("LOG_LEVEL", "INFO").upper(),
        "host": os.environ.get("HOST", "127.0.0.1"),
        "port": os.environ.get("PORT", "8000"),
    }
    try:
        return AppConfig.model_validate(values)
    except ValidationError as exc:
        raise ConfigurationError("Invalid configuration", data=exc.errors(include_url=False)) from exc


def configure_logging(level: str) -> None:
    """Route loguru output to a single stderr sink at 'level'."""
    logger.remove()
    logger.add(sys.stderr, level=level)


def build_embeddings_model(config: AppConfig) -> EmbeddingsModel:
    """Instantiate the embeddings backend selected in 'config'."""
    match config.embedding_backend:
        case "openai":
            from conversation_search.embeddings.openai import (
                DEFAULT_OPENAI_EMBEDDING_MODEL,
                DEFAULT_OPENAI_EMBEDDING_SIZE,
                OpenAIEmbeddings,
            )

            if config.openai_api_key is None:
                raise ConfigurationError("Missing environment variable OPENAI_KEY")
            name = config.embedding_model or DEFAULT_OPENAI_EMBEDDING_MODEL
            logger.info(f"Embeddings backend: OpenAI ({name})")
            return OpenAIEmbeddings(
                api_key=config.openai_api_key.get_secret_value(),
                model_name=name,
                embedding_size=config.embedding_size or DEFAULT_OPENAI_EMBEDDING_SIZE,
            )
        case "sentence-transformers":
            from conversation_search.embeddings.sentence_transformer import (
                DEFAULT_SENTENCE_TRANSFORMER_MODEL,
                SentenceTransformerEmbeddings,
            )

            name = config.embedding_model or DEFAULT_SENTENCE_TRANSFORMER_MODEL
            logger.info(f"Embeddings backend: sentence-transformers ({name})")
            return SentenceTransformerEmbeddings(model_name=name, embedding_size=config.embedding_size)
        case _:
            raise ConfigurationError(
                f"Unsupported embedding backend {config.embedding_backend!r}. Choose 'openai' or 'sentence-transformers'."
            )
