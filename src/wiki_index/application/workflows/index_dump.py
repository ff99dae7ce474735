from dataclasses import dataclass
from typing import IO, Callable

from src.config.logger_config import logger
from src.wiki_index.application.workflows.dump_parser import WikiDumpParser
from src.wiki_index.application.workflows.worker_pool import BoundedWorkerPool, PoolState
from src.wiki_index.domain.models import DeleteUpdateMode, IndexingSummary
from src.wiki_index.infrastructure.page_sink import BatchingPageSink

DumpOpener = Callable[[], IO[bytes]]


@dataclass(frozen=True)
class IndexWorkflowConfig:
    index_name: str
    mode: DeleteUpdateMode = DeleteUpdateMode.NA


class IndexDumpWorkflow:
    """Runs one parse pass and the teardown that follows it.

    Teardown order is fixed: stop the parser, drain the pool, then flush
    whatever is left in the sink. The flush runs even when the pool fails to
    terminate in time.
    """

    def __init__(
        self,
        parser: WikiDumpParser,
        pool: BoundedWorkerPool,
        sink: BatchingPageSink,
        config: IndexWorkflowConfig,
    ) -> None:
        self.parser = parser
        self.pool = pool
        self.sink = sink
        self.config = config

    def run(self, open_dump: DumpOpener) -> IndexingSummary:
        logger.info(
            "Indexing started: index_name={}, mode={}, normalize={}, bulk_size={}, workers={}",
            self.config.index_name,
            self.config.mode.value,
            self.parser.normalize,
            self.sink.bulk_size,
            self.pool.workers,
        )
        pool_state = PoolState.RUNNING
        remainder_failed: list[int] = []
        try:
            with open_dump() as stream:
                summary = self.parser.parse(stream)
        finally:
            pool_state = self.pool.shutdown()
            if pool_state is PoolState.FAILED:
                logger.warning("Flushing remaining pages with workers possibly still running")
            remainder_failed = self.sink.flush_remains()

        result = IndexingSummary(
            index_name=self.config.index_name,
            mode=self.config.mode,
            pages_seen=summary.pages_seen,
            pages_dispatched=summary.pages_dispatched,
            filtered_total=summary.filtered_total,
            duplicate_total=summary.duplicate_total,
            skipped_existing_total=summary.skipped_existing_total,
            existence_check_failed_total=summary.existence_check_failed_total,
            invalid_total=summary.invalid_total,
            ids_seen_total=len(self.parser.get_total_ids()),
            committed_total=self.sink.total_committed,
            remainder_failed_ids=tuple(remainder_failed),
            pool_state=pool_state.value,
            aborted=summary.aborted,
            error=summary.error,
        )
        logger.info(
            "Indexing completed: pages_seen={}, ids_seen={}, dispatched={}, committed={}, remainder_failed={}, pool_state={}, aborted={}",
            result.pages_seen,
            result.ids_seen_total,
            result.pages_dispatched,
            result.committed_total,
            len(result.remainder_failed_ids),
            result.pool_state,
            result.aborted,
        )
        return result
