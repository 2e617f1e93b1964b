from ragsearch.rag.knowledge_base import IngestionResult, KnowledgeBase, SearchHit

__all__ = ["KnowledgeBase", "IngestionResult", "SearchHit"]
