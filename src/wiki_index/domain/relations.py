"""Relation extraction from raw page wikitext.

`WikitextRelationsExtractor.extract` is a pure function of the page text; it
is called once per non-redirect page from the worker pool, so it keeps no
state between calls.
"""

import re
from typing import Iterable

import mwparserfromhell

from src.wiki_index.domain.models import PageRelations

HEADING_RE = re.compile(r"^=+[^=\n]+=+\s*$", re.MULTILINE)
LIST_LINE_RE = re.compile(r"^\s*[*#]+(.*)$", re.MULTILINE)
PARENTHESIS_RE = re.compile(r"\(([^()]+)\)")
WHITESPACE_RE = re.compile(r"\s+")
SENTENCE_END_RE = re.compile(r"(?<=[a-z0-9\)\]])\.(?:\s|$)")
BE_COMP_RE = re.compile(
    r"\b(?:is|was|are|were)\s+(?:a|an|the|one of the)\s+(?P<comp>[^,.;:()]+)",
    re.IGNORECASE,
)
PART_NAME_RE = re.compile(r"\b(?:surname|given name|first name|family name)\b", re.IGNORECASE)
DISAMBIGUATION_TEMPLATE_RE = re.compile(
    r"^(?:disambig|disambiguation|dab|hndis|geodis|numberdis|letter-number combination disambiguation)\b",
    re.IGNORECASE,
)
PART_NAME_TEMPLATE_RE = re.compile(r"^(?:surname|given name|hndis)\b", re.IGNORECASE)
INFOBOX_TEMPLATE_RE = re.compile(r"^infobox\b", re.IGNORECASE)

CATEGORY_PREFIX = "category:"
NON_ARTICLE_LINK_PREFIXES = (
    "category:",
    "file:",
    "image:",
    "media:",
    "wikipedia:",
    "portal:",
    "template:",
    "help:",
    "special:",
    "wikt:",
)
BE_COMP_MAX_WORDS = 6


def normalize_values(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        norm = WHITESPACE_RE.sub(" ", value or "").strip().lower()
        if norm and norm not in seen:
            seen.add(norm)
            result.append(norm)
    return tuple(result)


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        value = WHITESPACE_RE.sub(" ", value or "").strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return tuple(result)


def _link_target(wikilink) -> str:
    target = str(wikilink.title).strip()
    # Section anchors do not change the linked page.
    return target.split("#", 1)[0].strip()


def _lead_text(text: str) -> str:
    return HEADING_RE.split(text, 1)[0]


def _first_sentence(plain: str) -> str:
    collapsed = WHITESPACE_RE.sub(" ", plain).strip()
    if not collapsed:
        return ""
    return SENTENCE_END_RE.split(collapsed, 1)[0]


class WikitextRelationsExtractor:
    def extract(self, text: str, normalize: bool) -> PageRelations:
        if not text:
            return PageRelations.empty()

        code = mwparserfromhell.parse(text)
        template_names = [str(t.name).strip() for t in code.filter_templates(recursive=True)]

        categories: list[str] = []
        links: list[str] = []
        for wikilink in code.filter_wikilinks(recursive=True):
            target = _link_target(wikilink)
            if not target:
                continue
            target_low = target.lower().lstrip(":")
            if target_low.startswith(CATEGORY_PREFIX):
                categories.append(target.lstrip(":")[len(CATEGORY_PREFIX):])
            elif not target_low.startswith(NON_ARTICLE_LINK_PREFIXES):
                links.append(target)

        is_disambiguation = any(DISAMBIGUATION_TEMPLATE_RE.match(name) for name in template_names) or any(
            "disambiguation" in category.lower() for category in categories
        )
        disambiguation_links = self._disambiguation_links(text) if is_disambiguation else ()
        title_parenthesis = _unique(
            match.group(1) for link in disambiguation_links for match in PARENTHESIS_RE.finditer(link)
        )

        lead_code = mwparserfromhell.parse(_lead_text(text))
        aliases = _unique(
            tag.contents.strip_code(normalize=True, collapse=True)
            for tag in lead_code.filter_tags(recursive=False)
            if tag.wiki_markup in ("'''", "'''''")
        )
        first_sentence = _first_sentence(lead_code.strip_code(normalize=True, collapse=True))
        be_comp = self._be_comp(first_sentence)

        is_part_name = any(PART_NAME_TEMPLATE_RE.match(name) for name in template_names) or bool(
            is_disambiguation and PART_NAME_RE.search(first_sentence)
        )
        infobox = next((name for name in template_names if INFOBOX_TEMPLATE_RE.match(name)), None)

        relations = PageRelations(
            is_part_name=is_part_name,
            is_disambiguation=is_disambiguation,
            disambiguation_links=disambiguation_links,
            categories=_unique(categories),
            title_parenthesis=title_parenthesis,
            be_comp=be_comp,
            aliases=aliases,
            links=_unique(links),
            infobox=infobox,
        )
        if not normalize:
            return relations
        return PageRelations(
            is_part_name=relations.is_part_name,
            is_disambiguation=relations.is_disambiguation,
            disambiguation_links=relations.disambiguation_links,
            disambiguation_links_norm=normalize_values(relations.disambiguation_links),
            categories=relations.categories,
            categories_norm=normalize_values(relations.categories),
            title_parenthesis=relations.title_parenthesis,
            title_parenthesis_norm=normalize_values(relations.title_parenthesis),
            be_comp=relations.be_comp,
            be_comp_norm=normalize_values(relations.be_comp),
            aliases=relations.aliases,
            links=relations.links,
            infobox=relations.infobox,
        )

    @staticmethod
    def _disambiguation_links(text: str) -> tuple[str, ...]:
        targets: list[str] = []
        for match in LIST_LINE_RE.finditer(text):
            line_code = mwparserfromhell.parse(match.group(1))
            first_link = next(iter(line_code.filter_wikilinks(recursive=False)), None)
            if first_link is not None:
                targets.append(_link_target(first_link))
        return _unique(targets)

    @staticmethod
    def _be_comp(sentence: str) -> tuple[str, ...]:
        match = BE_COMP_RE.search(sentence)
        if match is None:
            return ()
        words = match.group("comp").split()[:BE_COMP_MAX_WORDS]
        return _unique([" ".join(words)])
