import json
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Sequence

import requests

from src.config.logger_config import logger
from src.wiki_index.application.ports import BulkListener
from src.wiki_index.domain.errors import BackendError
from src.wiki_index.domain.models import PageRecord

DEFAULT_TIMEOUT = (10, 60)
DEFAULT_DOC_TYPE = "_doc"
DEFAULT_MAX_PENDING_BULKS = 4


class ElasticsearchClient:
    """Thin Elasticsearch REST adapter used by the indexing pipeline.

    Safe to share between threads: each thread gets its own
    `requests.Session`, and bulk requests run on a private executor. At most
    `max_pending_bulks` bulk payloads are held at once; `write_bulk_async`
    blocks the caller beyond that.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:9200",
        timeout: tuple[float, float] = DEFAULT_TIMEOUT,
        bulk_concurrency: int = 2,
        max_pending_bulks: int = DEFAULT_MAX_PENDING_BULKS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self._pending_bulks = threading.BoundedSemaphore(max_pending_bulks)
        self._bulk_executor = ThreadPoolExecutor(max_workers=bulk_concurrency, thread_name_prefix="es-bulk")

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"Content-Type": "application/json"})
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def index_exists(self, index_name: str) -> bool:
        resp = self.session.head(f"{self.base_url}/{index_name}", timeout=self.timeout)
        return resp.status_code == 200

    def create_index(
        self,
        index_name: str,
        mapping: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> None:
        body: dict[str, Any] = {}
        if settings:
            body["settings"] = settings
        if mapping:
            body["mappings"] = mapping
        resp = self.session.put(f"{self.base_url}/{index_name}", data=json.dumps(body), timeout=self.timeout)
        if resp.status_code >= 300:
            raise BackendError(f"Create index {index_name} failed: HTTP {resp.status_code}: {resp.text}", resp.status_code)
        logger.info("Index created: index_name={}", index_name)

    def delete_index(self, index_name: str) -> bool:
        resp = self.session.delete(f"{self.base_url}/{index_name}", timeout=self.timeout)
        if resp.status_code == 404:
            return False
        if resp.status_code >= 300:
            raise BackendError(f"Delete index {index_name} failed: HTTP {resp.status_code}: {resp.text}", resp.status_code)
        logger.info("Index deleted: index_name={}", index_name)
        return True

    def exists(self, index_name: str, doc_type: str, page_id: str) -> bool:
        try:
            resp = self.session.head(self._doc_url(index_name, doc_type, page_id), timeout=self.timeout)
        except requests.RequestException as exc:
            raise BackendError(f"Existence check for id {page_id} failed: {exc}") from exc
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        raise BackendError(f"Existence check for id {page_id} failed: HTTP {resp.status_code}", resp.status_code)

    def write_one(self, index_name: str, doc_type: str, record: PageRecord) -> bool:
        try:
            resp = self.session.put(
                self._doc_url(index_name, doc_type, str(record.id)),
                data=json.dumps(record.to_document(), ensure_ascii=False).encode("utf-8"),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Document write failed: id={}, title={}, error={}", record.id, record.title, exc)
            return False
        if resp.status_code >= 300:
            logger.error(
                "Document write rejected: id={}, title={}, status={}, body={}",
                record.id,
                record.title,
                resp.status_code,
                resp.text,
            )
            return False
        return True

    def write_bulk_async(
        self,
        listener: BulkListener,
        index_name: str,
        doc_type: str,
        batch: Sequence[PageRecord],
    ) -> None:
        self._pending_bulks.acquire()
        try:
            payload = self.build_bulk_payload(index_name, doc_type, batch)
            future = self._bulk_executor.submit(self._post_bulk, payload)
        except Exception:
            self._pending_bulks.release()
            raise
        future.add_done_callback(lambda f: self._on_bulk_done(f, listener))

    def close(self) -> None:
        """Wait for in-flight bulk requests, then release connections."""
        self._bulk_executor.shutdown(wait=True)
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    @staticmethod
    def build_bulk_payload(index_name: str, doc_type: str, batch: Sequence[PageRecord]) -> str:
        lines: list[str] = []
        for record in batch:
            meta: dict[str, Any] = {"_index": index_name, "_id": str(record.id)}
            if doc_type and doc_type != DEFAULT_DOC_TYPE:
                meta["_type"] = doc_type
            lines.append(json.dumps({"index": meta}, ensure_ascii=False))
            lines.append(json.dumps(record.to_document(), ensure_ascii=False))
        return "\n".join(lines) + "\n"

    def _doc_url(self, index_name: str, doc_type: str, page_id: str) -> str:
        return f"{self.base_url}/{index_name}/{doc_type or DEFAULT_DOC_TYPE}/{page_id}"

    def _post_bulk(self, payload: str) -> dict[str, Any]:
        resp = self.session.post(
            f"{self.base_url}/_bulk",
            data=payload.encode("utf-8"),
            headers={"Content-Type": "application/x-ndjson"},
            timeout=self.timeout,
        )
        if resp.status_code >= 300:
            raise BackendError(f"Bulk request failed: HTTP {resp.status_code}: {resp.text}", resp.status_code)
        return resp.json()

    def _on_bulk_done(self, future: Future, listener: BulkListener) -> None:
        self._pending_bulks.release()
        exc = future.exception()
        try:
            if exc is not None:
                listener.on_failure(exc)
            else:
                listener.on_response(future.result())
        except Exception as listener_exc:
            logger.exception("Bulk listener raised: {}", listener_exc)
