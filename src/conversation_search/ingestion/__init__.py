from conversation_search.ingestion.pipeline import IngestionPipeline, IngestionResult, IngestMessage

__all__ = [
    "IngestMessage",
    "IngestionPipeline",
    "IngestionResult",
]
