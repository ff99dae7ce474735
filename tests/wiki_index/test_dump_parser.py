import io
import unittest

from src.wiki_index.application.workflows.dump_parser import PageTask, WikiDumpParser
from src.wiki_index.domain.errors import BackendError
from src.wiki_index.domain.models import DeleteUpdateMode, PageRecord, PageRelations, RawPage
from tests.utils.dump_builder import build_dump, page_xml


class InlineExecutor:
    def __init__(self) -> None:
        self.submitted = 0

    def submit(self, task) -> None:
        self.submitted += 1
        task()


class FakeSink:
    def __init__(self, existing_ids: set[str] | None = None) -> None:
        self.records: list[PageRecord] = []
        self.existing_ids = existing_ids or set()
        self.exists_calls: list[str] = []

    def add_page(self, record: PageRecord | None) -> None:
        if record is not None:
            self.records.append(record)

    def is_page_exists(self, page_id: str) -> bool:
        self.exists_calls.append(page_id)
        return page_id in self.existing_ids

    def flush_remains(self) -> list[int]:
        return []


class FakeExtractor:
    def __init__(self) -> None:
        self.calls: list[tuple[str, bool]] = []

    def extract(self, text: str, normalize: bool) -> PageRelations:
        self.calls.append((text, normalize))
        return PageRelations(categories=("Extracted",))


def make_parser(sink=None, mode=DeleteUpdateMode.NA, normalize=True):
    sink = sink or FakeSink()
    executor = InlineExecutor()
    extractor = FakeExtractor()
    parser = WikiDumpParser(sink=sink, executor=executor, extractor=extractor, normalize=normalize, mode=mode)
    return parser, sink, executor, extractor


class WikiDumpParserTests(unittest.TestCase):
    def test_extracts_fields_and_dispatches_article(self):
        parser, sink, executor, extractor = make_parser()
        dump = build_dump(page_xml(12, "Cat", "The '''cat''' is a mammal."))

        summary = parser.parse(io.BytesIO(dump))

        self.assertFalse(summary.aborted)
        self.assertEqual(summary.pages_seen, 1)
        self.assertEqual(summary.pages_dispatched, 1)
        self.assertEqual(executor.submitted, 1)
        self.assertEqual(len(sink.records), 1)
        record = sink.records[0]
        self.assertEqual(record.id, 12)
        self.assertEqual(record.title, "Cat")
        self.assertEqual(record.text, "The '''cat''' is a mammal.")
        self.assertIsNone(record.redirect_title)
        self.assertEqual(record.relations.categories, ("Extracted",))
        self.assertEqual(extractor.calls, [("The '''cat''' is a mammal.", True)])

    def test_only_first_id_of_a_page_is_registered(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(page_xml(5, "Dog", "text", revision_id=501, contributor_id=77))

        parser.parse(io.BytesIO(dump))

        self.assertEqual(parser.get_total_ids(), {5})
        self.assertEqual(sink.records[0].id, 5)

    def test_parses_dump_without_xml_namespace(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(page_xml(1, "Cat", "hello"), namespace=None)

        parser.parse(io.BytesIO(dump))

        self.assertEqual([r.id for r in sink.records], [1])

    def test_non_article_namespaces_are_never_dispatched(self):
        titles = [
            "Portal:Foo",
            "Category:Cats",
            "File:Cat.jpg",
            "Wikipedia:About",
            "Draft:Thing",
            "Template:Infobox",
            "Talk about CATEGORY:things",
        ]
        parser, sink, executor, _ = make_parser()
        pages = [page_xml(i + 1, title, "body") for i, title in enumerate(titles)]
        pages.append(page_xml(100, "Cat", "hello"))

        summary = parser.parse(io.BytesIO(build_dump(*pages)))

        self.assertEqual(summary.filtered_total, len(titles))
        self.assertEqual(summary.pages_dispatched, 1)
        self.assertEqual(executor.submitted, 1)
        self.assertEqual([r.title for r in sink.records], ["Cat"])

    def test_redirect_text_is_collapsed_and_relations_are_empty(self):
        parser, sink, _, extractor = make_parser()
        dump = build_dump(page_xml(3, "Kitty", "#REDIRECT [[Cat]] {{R from alternative name}}", redirect="Cat"))

        parser.parse(io.BytesIO(dump))

        record = sink.records[0]
        self.assertEqual(record.text, "#REDIRECT")
        self.assertEqual(record.redirect_title, "Cat")
        self.assertEqual(record.relations, PageRelations.empty())
        self.assertEqual(extractor.calls, [])

    def test_redirect_marker_text_without_redirect_element_still_collapses(self):
        parser, sink, _, extractor = make_parser()
        dump = build_dump(page_xml(4, "Feline", "#REDIRECT [[Cat]]"))

        parser.parse(io.BytesIO(dump))

        self.assertEqual(sink.records[0].text, "#REDIRECT")
        self.assertIsNone(sink.records[0].redirect_title)
        self.assertEqual(extractor.calls, [("#REDIRECT", True)])

    def test_duplicate_page_id_keeps_first_occurrence(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(
            page_xml(1, "Cat", "hello"),
            page_xml(2, "Portal:Foo", "irrelevant"),
            page_xml(1, "Cat-dup", "world"),
        )

        summary = parser.parse(io.BytesIO(dump))

        self.assertEqual([(r.id, r.title) for r in sink.records], [(1, "Cat")])
        self.assertEqual(summary.duplicate_total, 1)
        self.assertEqual(summary.filtered_total, 1)
        self.assertEqual(parser.get_total_ids(), {1, 2})

    def test_update_mode_skips_pages_already_in_backend(self):
        sink = FakeSink(existing_ids={"1"})
        parser, sink, _, _ = make_parser(sink=sink, mode=DeleteUpdateMode.UPDATE)
        dump = build_dump(page_xml(1, "Cat", "hello"), page_xml(2, "Dog", "woof"))

        summary = parser.parse(io.BytesIO(dump))

        self.assertEqual(sink.exists_calls, ["1", "2"])
        self.assertEqual([r.id for r in sink.records], [2])
        self.assertEqual(summary.skipped_existing_total, 1)

    def test_na_and_delete_modes_never_check_existence(self):
        for mode in (DeleteUpdateMode.NA, DeleteUpdateMode.DELETE):
            with self.subTest(mode=mode):
                sink = FakeSink(existing_ids={"1"})
                parser, sink, _, _ = make_parser(sink=sink, mode=mode)

                parser.parse(io.BytesIO(build_dump(page_xml(1, "Cat", "hello"))))

                self.assertEqual(sink.exists_calls, [])
                self.assertEqual([r.id for r in sink.records], [1])

    def test_normalize_flag_is_passed_to_extractor(self):
        parser, _, _, extractor = make_parser(normalize=False)

        parser.parse(io.BytesIO(build_dump(page_xml(1, "Cat", "hello"))))

        self.assertEqual(extractor.calls, [("hello", False)])

    def test_truncated_stream_aborts_without_dispatching_partial_page(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(page_xml(1, "Cat", "hello"), page_xml(2, "Dog", "woof"))
        truncated = dump[: dump.index(b"<title>Dog")]

        summary = parser.parse(io.BytesIO(truncated))

        self.assertTrue(summary.aborted)
        self.assertIsNotNone(summary.error)
        self.assertEqual([r.id for r in sink.records], [1])

    def test_non_numeric_id_aborts_the_pass(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(
            page_xml(1, "Cat", "hello"),
            page_xml("abc", "Broken", "text"),
            page_xml(3, "Dog", "woof"),
        )

        summary = parser.parse(io.BytesIO(dump))

        self.assertTrue(summary.aborted)
        self.assertIn("MalformedDumpError", summary.error)
        self.assertEqual([r.id for r in sink.records], [1])

    def test_negative_id_aborts_the_pass(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(page_xml(1, "Cat", "hello"), page_xml(-4, "Broken", "text"), page_xml(3, "Dog", "woof"))

        summary = parser.parse(io.BytesIO(dump))

        self.assertTrue(summary.aborted)
        self.assertIn("Negative page id -4", summary.error)
        self.assertEqual([r.id for r in sink.records], [1])

    def test_failed_existence_check_indexes_page_and_continues(self):
        class FlakySink(FakeSink):
            def is_page_exists(self, page_id: str) -> bool:
                if page_id == "2":
                    raise BackendError("Existence check for id 2 failed: HTTP 503", 503)
                return super().is_page_exists(page_id)

        sink = FlakySink(existing_ids={"3"})
        parser, sink, _, _ = make_parser(sink=sink, mode=DeleteUpdateMode.UPDATE)
        dump = build_dump(page_xml(1, "Cat", "a"), page_xml(2, "Dog", "b"), page_xml(3, "Cow", "c"))

        summary = parser.parse(io.BytesIO(dump))

        self.assertFalse(summary.aborted)
        self.assertEqual(summary.existence_check_failed_total, 1)
        self.assertEqual(summary.skipped_existing_total, 1)
        self.assertEqual(sink.exists_calls, ["1", "3"])
        self.assertEqual([r.id for r in sink.records], [1, 2])

    def test_page_without_id_or_title_is_skipped(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(
            page_xml(None, "No id", "text", revision_id=None, contributor_id=None),
            page_xml(8, None, "text"),
            page_xml(9, "Dog", "woof"),
        )

        summary = parser.parse(io.BytesIO(dump))

        self.assertFalse(summary.aborted)
        self.assertEqual(summary.invalid_total, 2)
        self.assertEqual([r.id for r in sink.records], [9])

    def test_parse_resets_registry_between_passes(self):
        parser, sink, _, _ = make_parser()
        dump = build_dump(page_xml(1, "Cat", "hello"))

        parser.parse(io.BytesIO(dump))
        summary = parser.parse(io.BytesIO(dump))

        self.assertEqual(summary.duplicate_total, 0)
        self.assertEqual(len(sink.records), 2)


class PageTaskTests(unittest.TestCase):
    def test_task_builds_record_and_hands_it_to_sink(self):
        sink = FakeSink()
        extractor = FakeExtractor()
        task = PageTask(
            page=RawPage(id=1, title="Cat", text="hello"),
            extractor=extractor,
            sink=sink,
            normalize=True,
        )

        task()

        self.assertEqual(
            sink.records,
            [PageRecord(id=1, title="Cat", text="hello", relations=PageRelations(categories=("Extracted",)))],
        )
