from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DeleteUpdateMode(str, Enum):
    NA = "NA"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class PageRelations:
    is_part_name: bool = False
    is_disambiguation: bool = False
    disambiguation_links: tuple[str, ...] = ()
    disambiguation_links_norm: tuple[str, ...] = ()
    categories: tuple[str, ...] = ()
    categories_norm: tuple[str, ...] = ()
    title_parenthesis: tuple[str, ...] = ()
    title_parenthesis_norm: tuple[str, ...] = ()
    be_comp: tuple[str, ...] = ()
    be_comp_norm: tuple[str, ...] = ()
    aliases: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    infobox: str | None = None

    @classmethod
    def empty(cls) -> "PageRelations":
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "isPartName": self.is_part_name,
            "isDisambiguation": self.is_disambiguation,
            "disambiguationLinks": list(self.disambiguation_links),
            "disambiguationLinksNorm": list(self.disambiguation_links_norm),
            "categories": list(self.categories),
            "categoriesNorm": list(self.categories_norm),
            "titleParenthesis": list(self.title_parenthesis),
            "titleParenthesisNorm": list(self.title_parenthesis_norm),
            "beCompRelations": list(self.be_comp),
            "beCompRelationsNorm": list(self.be_comp_norm),
            "aliases": list(self.aliases),
            "links": list(self.links),
            "infobox": self.infobox,
        }


@dataclass(frozen=True)
class PageRecord:
    id: int
    title: str
    text: str
    redirect_title: str | None = None
    relations: PageRelations = field(default_factory=PageRelations.empty)

    def to_document(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "text": self.text,
            "redirectTitle": self.redirect_title,
            "relations": self.relations.to_dict(),
        }


@dataclass(frozen=True)
class RawPage:
    """Fields read from one <page> element, before any transformation."""

    id: int
    title: str
    text: str
    redirect_title: str | None = None


@dataclass
class ParseSummary:
    pages_seen: int = 0
    pages_dispatched: int = 0
    filtered_total: int = 0
    duplicate_total: int = 0
    skipped_existing_total: int = 0
    existence_check_failed_total: int = 0
    invalid_total: int = 0
    aborted: bool = False
    error: str | None = None


@dataclass(frozen=True)
class IndexingSummary:
    index_name: str
    mode: DeleteUpdateMode
    pages_seen: int
    pages_dispatched: int
    filtered_total: int
    duplicate_total: int
    skipped_existing_total: int
    existence_check_failed_total: int
    invalid_total: int
    ids_seen_total: int
    committed_total: int
    remainder_failed_ids: tuple[int, ...]
    pool_state: str
    aborted: bool
    error: str | None = None
