from typing import Any, Callable, Protocol, Sequence, runtime_checkable

from src.wiki_index.domain.models import PageRecord, PageRelations


@runtime_checkable
class BulkListener(Protocol):
    def on_response(self, result: dict[str, Any]) -> None:
        """Called with the decoded bulk response once the request completes."""
        ...

    def on_failure(self, exc: Exception) -> None:
        """Called when the bulk request could not be completed."""
        ...


@runtime_checkable
class SearchBackendPort(Protocol):
    def exists(self, index_name: str, doc_type: str, page_id: str) -> bool:
        """Raises BackendError when the backend cannot answer."""
        ...

    def write_one(self, index_name: str, doc_type: str, record: PageRecord) -> bool:
        """Synchronous single document write; True on success."""
        ...

    def write_bulk_async(
        self,
        listener: BulkListener,
        index_name: str,
        doc_type: str,
        batch: Sequence[PageRecord],
    ) -> None:
        """Fire-and-forget bulk write; the outcome goes to `listener` only."""
        ...


@runtime_checkable
class RelationsExtractorPort(Protocol):
    def extract(self, text: str, normalize: bool) -> PageRelations: ...


@runtime_checkable
class PageSinkPort(Protocol):
    def add_page(self, record: PageRecord | None) -> None: ...

    def is_page_exists(self, page_id: str) -> bool: ...

    def flush_remains(self) -> list[int]: ...


@runtime_checkable
class TaskExecutorPort(Protocol):
    def submit(self, task: Callable[[], None]) -> None: ...
