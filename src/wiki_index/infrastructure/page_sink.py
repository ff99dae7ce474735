import threading

from src.config.logger_config import logger
from src.wiki_index.application.ports import BulkListener, SearchBackendPort
from src.wiki_index.domain.models import PageRecord


class BatchingPageSink:
    """Accumulates page records and commits them to the backend in bulk.

    `add_page`, the threshold check and the snapshot-and-clear of a flush
    all run under one lock, so a batch is handed off exactly once when it
    reaches `bulk_size`. `flush_remains` is the teardown path and must only
    run after the worker pool has drained.
    """

    def __init__(
        self,
        backend: SearchBackendPort,
        listener: BulkListener,
        index_name: str,
        doc_type: str,
        bulk_size: int,
    ) -> None:
        if bulk_size <= 0:
            raise ValueError("bulk_size must be positive")
        self.backend = backend
        self.listener = listener
        self.index_name = index_name
        self.doc_type = doc_type
        self.bulk_size = bulk_size
        self._pages: list[PageRecord] = []
        self._total_committed = 0
        self._lock = threading.RLock()

    def is_page_exists(self, page_id: str) -> bool:
        if page_id:
            return self.backend.exists(self.index_name, self.doc_type, page_id)
        return False

    def add_page(self, record: PageRecord | None) -> None:
        if record is None:
            return
        with self._lock:
            self._pages.append(record)
            if len(self._pages) == self.bulk_size:
                self.flush()

    def flush(self) -> None:
        with self._lock:
            batch = self._take_all()
            if not batch:
                return
            logger.debug("Flushing bulk batch: size={}, total_committed={}", len(batch), self._total_committed)
            self.backend.write_bulk_async(self.listener, self.index_name, self.doc_type, batch)

    def flush_remains(self) -> list[int]:
        """Write whatever is left one document at a time, synchronously.

        Returns the ids of records the backend reported as failed.
        """
        with self._lock:
            remains = self._take_all()
        failed_ids: list[int] = []
        for record in remains:
            if not self.backend.write_one(self.index_name, self.doc_type, record):
                failed_ids.append(record.id)
        logger.info(
            "Flushed remaining pages: written={}, failed={}, total_committed={}",
            len(remains) - len(failed_ids),
            len(failed_ids),
            self.total_committed,
        )
        return failed_ids

    @property
    def total_committed(self) -> int:
        with self._lock:
            return self._total_committed

    @property
    def queue_size(self) -> int:
        with self._lock:
            return len(self._pages)

    def _take_all(self) -> list[PageRecord]:
        batch = self._pages
        self._pages = []
        self._total_committed += len(batch)
        return batch
