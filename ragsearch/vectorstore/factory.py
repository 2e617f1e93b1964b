"""
Vector Store Factory

Builds the configured vector store from settings. The rest of the app
only imports get_vector_store() and never touches the concrete class.
"""

from __future__ import annotations

from ragsearch.core.config import Settings, settings as default_settings
from ragsearch.vectorstore.base import VectorStoreBase


def get_vector_store(config: Settings | None = None) -> VectorStoreBase:
    """
    Return an Azure AI Search backed store for the configured service.
    Call once per process and share it; the store owns a per-index
    client cache that is only useful when reused.
    """
    config = config or default_settings
    if not config.azure_search_endpoint:
        raise ValueError(
            "AZURE_SEARCH_ENDPOINT is not configured; cannot build the vector store"
        )

    from ragsearch.vectorstore.azure_search_store import AzureAISearchVectorStore
    return AzureAISearchVectorStore(
        endpoint=config.azure_search_endpoint,
        api_key=config.azure_search_api_key,
        store_id=config.azure_search_store_id,
    )
