"""Infrastructure adapters for dump indexing."""

from src.wiki_index.infrastructure.bulk_listener import LoggingBulkListener
from src.wiki_index.infrastructure.es_client import ElasticsearchClient
from src.wiki_index.infrastructure.page_sink import BatchingPageSink

__all__ = ["BatchingPageSink", "ElasticsearchClient", "LoggingBulkListener"]
