"""Wikipedia dump indexing package."""

from src.wiki_index.domain.models import DeleteUpdateMode, IndexingSummary
from src.wiki_index.indexing import run_indexing

__all__ = [
    "DeleteUpdateMode",
    "IndexingSummary",
    "run_indexing",
]
