"""Document indexing and retrieval on Azure AI Search + Document Intelligence."""

__version__ = "0.1.0"
