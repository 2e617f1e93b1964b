"""
Application configuration via environment variables (12-factor).
Pydantic BaseSettings validates and coerces all values at startup.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # Azure AI Search (vector index backend)
    # ------------------------------------------------------------------
    azure_search_endpoint: str = ""   # https://<service>.search.windows.net
    azure_search_api_key:  str = ""   # admin key; query keys cannot create indexes
    azure_search_store_id: str = "azure-ai-search"

    # ------------------------------------------------------------------
    # Azure Document Intelligence (layout extraction)
    # ------------------------------------------------------------------
    azure_doc_intelligence_endpoint: str = ""
    azure_doc_intelligence_key:      str = ""
    doc_intelligence_model_id:       str = "prebuilt-layout"

    # ------------------------------------------------------------------
    # Embeddings + chunking
    # ------------------------------------------------------------------
    openai_api_key:  str = ""
    embedding_model: str = "text-embedding-3-large"

    chunk_size:    int = 512    # characters per chunk
    chunk_overlap: int = 50

    default_index_name: str = "documents"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    app_env: str = "development"   # development | staging | production
    debug: bool = False

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
