import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import IO, Iterator

from src.config.logger_config import logger
from src.wiki_index.application.ports import PageSinkPort, RelationsExtractorPort, TaskExecutorPort
from src.wiki_index.domain.errors import BackendError, MalformedDumpError
from src.wiki_index.domain.models import DeleteUpdateMode, PageRecord, PageRelations, ParseSummary, RawPage
from src.wiki_index.domain.rules import (
    ID_ELEMENT,
    PAGE_ELEMENT,
    REDIRECT_ELEMENT,
    TEXT_ELEMENT,
    TITLE_ELEMENT,
    UNSET_PAGE_ID,
    collapse_redirect_text,
    is_filtered_title,
    local_name,
)

XmlEvents = Iterator[tuple[str, ET.Element]]


@dataclass(frozen=True)
class PageTask:
    """Transformation of one accepted page, run on a pool worker or inline."""

    page: RawPage
    extractor: RelationsExtractorPort
    sink: PageSinkPort
    normalize: bool

    def __call__(self) -> None:
        page = self.page
        logger.debug("Prepare to commit page: id={}, title={}", page.id, page.title)
        if page.redirect_title:
            # Relations of a redirect live on its target page.
            relations = PageRelations.empty()
        else:
            relations = self.extractor.extract(page.text, self.normalize)

        self.sink.add_page(
            PageRecord(
                id=page.id,
                title=page.title,
                text=page.text,
                redirect_title=page.redirect_title,
                relations=relations,
            )
        )


class WikiDumpParser:
    """Single-pass streaming parser for MediaWiki XML export dumps."""

    def __init__(
        self,
        sink: PageSinkPort,
        executor: TaskExecutorPort,
        extractor: RelationsExtractorPort,
        normalize: bool = True,
        mode: DeleteUpdateMode = DeleteUpdateMode.NA,
    ) -> None:
        self.sink = sink
        self.executor = executor
        self.extractor = extractor
        self.normalize = normalize
        self.mode = DeleteUpdateMode(mode)
        self.total_ids: set[int] = set()
        self.summary = ParseSummary()

    def parse(self, stream: IO[bytes]) -> ParseSummary:
        self.total_ids = set()
        self.summary = ParseSummary()
        events: XmlEvents = ET.iterparse(stream, events=("start", "end"))
        try:
            root = None
            for event, elem in events:
                if root is None:
                    root = elem
                if event == "start" and local_name(elem.tag) == PAGE_ELEMENT:
                    page = self._parse_page(events)
                    # Drop finished pages from the tree so memory stays flat.
                    root.clear()
                    if page is not None:
                        self._route_page(page)
        except (ET.ParseError, MalformedDumpError, EOFError, OSError) as exc:
            # Truncated bz2 streams surface as EOFError or OSError from read().
            self.summary.aborted = True
            self.summary.error = f"{type(exc).__name__}:{exc}"
            logger.error("Dump parse aborted: error={}, pages_seen={}", exc, self.summary.pages_seen)

        logger.info(
            "Dump parse finished: pages_seen={}, dispatched={}, filtered={}, duplicates={}, skipped_existing={}, existence_check_failed={}, invalid={}, aborted={}",
            self.summary.pages_seen,
            self.summary.pages_dispatched,
            self.summary.filtered_total,
            self.summary.duplicate_total,
            self.summary.skipped_existing_total,
            self.summary.existence_check_failed_total,
            self.summary.invalid_total,
            self.summary.aborted,
        )
        return self.summary

    def get_total_ids(self) -> set[int]:
        return self.total_ids

    def _parse_page(self, events: XmlEvents) -> RawPage | None:
        title: str | None = None
        page_id = UNSET_PAGE_ID
        text: str | None = None
        redirect: str | None = None
        duplicate = False

        for event, elem in events:
            name = local_name(elem.tag)
            if event == "start":
                if name == REDIRECT_ELEMENT:
                    redirect = elem.get(TITLE_ELEMENT)
                continue

            if name == PAGE_ELEMENT:
                break
            if name == TITLE_ELEMENT:
                if title is None:
                    title = elem.text or ""
            elif name == ID_ELEMENT:
                if page_id == UNSET_PAGE_ID:
                    page_id = self._parse_id(elem.text, title)
                    duplicate = page_id in self.total_ids
                    self.total_ids.add(page_id)
            elif name == TEXT_ELEMENT:
                text = collapse_redirect_text(elem.text)
        else:
            raise MalformedDumpError(f"Unterminated page element (title={title!r})")

        self.summary.pages_seen += 1
        if not title or page_id == UNSET_PAGE_ID:
            self.summary.invalid_total += 1
            logger.warning("Skipping page with missing title or id: id={}, title={}", page_id, title)
            return None
        if duplicate:
            self.summary.duplicate_total += 1
            logger.warning("Skipping duplicate page id, first occurrence wins: id={}, title={}", page_id, title)
            return None

        return RawPage(id=page_id, title=title, text=text or "", redirect_title=redirect or None)

    @staticmethod
    def _parse_id(raw: str | None, title: str | None) -> int:
        try:
            page_id = int((raw or "").strip())
        except ValueError as exc:
            raise MalformedDumpError(f"Unparsable page id {raw!r} (title={title!r})") from exc
        if page_id < 0:
            raise MalformedDumpError(f"Negative page id {page_id} (title={title!r})")
        return page_id

    def _route_page(self, page: RawPage) -> None:
        if self.mode is DeleteUpdateMode.UPDATE:
            try:
                exists = self.sink.is_page_exists(str(page.id))
            except BackendError as exc:
                # Documents are keyed by id; an existing page is overwritten.
                self.summary.existence_check_failed_total += 1
                logger.error(
                    "Existence check failed, indexing page anyway: id={}, title={}, error={}", page.id, page.title, exc
                )
                exists = False
            if exists:
                self.summary.skipped_existing_total += 1
                logger.info("Page already exists, moving on: id={}, title={}", page.id, page.title)
                return
            self._handle_page(page)
        elif self.mode is DeleteUpdateMode.DELETE:
            # The index was reset before parsing; every page is new.
            self._handle_page(page)
        elif self.mode is DeleteUpdateMode.NA:
            self._handle_page(page)
        else:
            raise NotImplementedError(f"Unhandled mode: {self.mode}")

    def _handle_page(self, page: RawPage) -> None:
        if is_filtered_title(page.title):
            self.summary.filtered_total += 1
            logger.info("Skipping page processing of non-article page: title={}", page.title)
            return

        self.executor.submit(
            PageTask(
                page=page,
                extractor=self.extractor,
                sink=self.sink,
                normalize=self.normalize,
            )
        )
        self.summary.pages_dispatched += 1
