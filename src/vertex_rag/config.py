"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CHAT_MODEL = "gemini-1.5-flash-002"
DEFAULT_EMBED_MODEL = "text-embedding-004"


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file.

    Several fields accept more than one environment variable; the first
    alias that is set wins, otherwise the hard default applies.  Build one
    instance at process start and hand it to the components that need it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Vertex AI
    project_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "GCP_PROJECT_ID",
            "GOOGLE_CLOUD_PROJECT",
            "GCLOUD_PROJECT",
            "GEMINI_PROJECT",
            "VERTEX_PROJECT_ID",
        ),
        description="Google Cloud project. Discovered from credentials when unset.",
    )
    location: str = Field(
        default="us-central1",
        validation_alias=AliasChoices(
            "GCP_LOCATION",
            "GCLOUD_REGION",
            "GOOGLE_CLOUD_REGION",
            "GEMINI_LOCATION",
            "VERTEX_LOCATION",
        ),
    )
    chat_model: str = Field(
        default=DEFAULT_CHAT_MODEL,
        validation_alias=AliasChoices("VERTEX_CHAT_MODEL", "GEMINI_MODEL"),
    )
    embed_model: str = Field(
        default=DEFAULT_EMBED_MODEL,
        validation_alias=AliasChoices("VERTEX_EMBED_MODEL", "GEMINI_EMBED_MODEL"),
    )
    request_timeout: float = Field(
        default=60.0, gt=0, validation_alias="VERTEX_REQUEST_TIMEOUT"
    )

    # Local mode: OpenAI through LangChain with a key, echo backend without
    local: bool = False
    openai_api_key: str = ""
    openai_chat_model: str = "gpt-4o-mini"
    openai_embed_model: str = "text-embedding-3-large"

    # Storage
    storage_dir: Path = Field(default=Path("local-storage"), validation_alias="LOCAL_STORAGE_DIR")
    sqlite_path: Path = Path("data/dev.sqlite")

    # Uploads / ingestion
    max_upload_size: str = "8MB"
    ingest_batch_size: int = Field(default=10, ge=1)
    chunk_size: int = Field(default=500, ge=1)
    chunk_overlap: int = Field(default=100, ge=0)

    # Retrieval
    top_k: int = Field(default=5, ge=1, validation_alias="RETRIEVAL_TOP_K")

    log_level: str = "INFO"

    @property
    def vector_store_path(self) -> Path:
        """JSON file backing the local vector index."""
        return self.storage_dir / "vectors.json"
