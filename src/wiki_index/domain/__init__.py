"""Domain models and deterministic rules for dump indexing."""

from src.wiki_index.domain.errors import (
    BackendError,
    MalformedDumpError,
    PoolShutdownError,
    WikiIndexError,
)
from src.wiki_index.domain.models import (
    DeleteUpdateMode,
    IndexingSummary,
    PageRecord,
    PageRelations,
    ParseSummary,
    RawPage,
)
from src.wiki_index.domain.relations import WikitextRelationsExtractor
from src.wiki_index.domain.rules import collapse_redirect_text, is_filtered_title, local_name

__all__ = [
    "BackendError",
    "collapse_redirect_text",
    "DeleteUpdateMode",
    "IndexingSummary",
    "is_filtered_title",
    "local_name",
    "MalformedDumpError",
    "PageRecord",
    "PageRelations",
    "ParseSummary",
    "PoolShutdownError",
    "RawPage",
    "WikiIndexError",
    "WikitextRelationsExtractor",
]
