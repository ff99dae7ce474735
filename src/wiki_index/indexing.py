from __future__ import annotations

import bz2
import os
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

from tqdm import tqdm

from src.config.logger_config import logger
from src.config.settings import DEFAULT_CONFIG_PATH, IndexerConfig, load_config
from src.wiki_index.application.workflows.dump_parser import WikiDumpParser
from src.wiki_index.application.workflows.index_dump import IndexDumpWorkflow, IndexWorkflowConfig
from src.wiki_index.application.workflows.worker_pool import BoundedWorkerPool
from src.wiki_index.domain.models import DeleteUpdateMode, IndexingSummary
from src.wiki_index.domain.relations import WikitextRelationsExtractor
from src.wiki_index.infrastructure.bulk_listener import LoggingBulkListener
from src.wiki_index.infrastructure.es_client import ElasticsearchClient
from src.wiki_index.infrastructure.page_sink import BatchingPageSink


class ProgressReader:
    """File-like wrapper that reports consumed bytes to a tqdm bar."""

    def __init__(self, raw: IO[bytes], progress: tqdm) -> None:
        self.raw = raw
        self.progress = progress

    def read(self, size: int = -1) -> bytes:
        chunk = self.raw.read(size)
        self.progress.update(len(chunk))
        return chunk


@contextmanager
def open_dump(path: str | Path, show_progress: bool = True) -> Iterator[IO[bytes]]:
    dump_path = Path(path)
    opener = bz2.open if dump_path.suffix == ".bz2" else open
    with (
        opener(dump_path, "rb") as raw,
        tqdm(
            total=os.path.getsize(dump_path) if opener is open else None,
            desc=f"Parsing {dump_path.name}",
            unit="B",
            unit_scale=True,
            leave=True,
            disable=not show_progress,
        ) as progress,
    ):
        yield ProgressReader(raw, progress)


def prepare_index(client: ElasticsearchClient, config: IndexerConfig, mode: DeleteUpdateMode) -> None:
    if mode is DeleteUpdateMode.DELETE and client.delete_index(config.index_name):
        logger.info("Existing index removed before full reindex: index_name={}", config.index_name)
    if client.index_exists(config.index_name):
        logger.info("Index already exists: index_name={}", config.index_name)
        return
    client.create_index(
        config.index_name,
        mapping=config.mapping_content(),
        settings=config.setting_content(),
    )


def run_indexing(
    *,
    config: IndexerConfig | None = None,
    config_path: str | Path = DEFAULT_CONFIG_PATH,
    mode: DeleteUpdateMode | str = DeleteUpdateMode.NA,
    workers: int | None = None,
    show_progress: bool = True,
) -> IndexingSummary:
    config = config or load_config(config_path)
    mode = DeleteUpdateMode(mode)

    client = ElasticsearchClient(base_url=config.base_url)
    try:
        prepare_index(client, config, mode)
        sink = BatchingPageSink(
            backend=client,
            listener=LoggingBulkListener(),
            index_name=config.index_name,
            doc_type=config.doc_type,
            bulk_size=config.insert_bulk_size,
        )
        pool = BoundedWorkerPool(workers=workers)
        parser = WikiDumpParser(
            sink=sink,
            executor=pool,
            extractor=WikitextRelationsExtractor(),
            normalize=config.normalize_fields,
            mode=mode,
        )
        workflow = IndexDumpWorkflow(
            parser=parser,
            pool=pool,
            sink=sink,
            config=IndexWorkflowConfig(index_name=config.index_name, mode=mode),
        )
        return workflow.run(lambda: open_dump(config.wiki_dump, show_progress=show_progress))
    finally:
        client.close()
