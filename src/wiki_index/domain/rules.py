import re

PAGE_ELEMENT = "page"
TITLE_ELEMENT = "title"
ID_ELEMENT = "id"
TEXT_ELEMENT = "text"
REDIRECT_ELEMENT = "redirect"

REDIRECT_TEXT_PREFIX = "#REDIRECT"

# Matched as substrings of the lower-cased title.
FILTER_TITLES: tuple[str, ...] = (
    "portal:",
    "category:",
    "file:",
    "wikipedia:",
    "draft:",
    "template:",
)

UNSET_PAGE_ID = -1

_NAMESPACE_RE = re.compile(r"^\{[^}]*\}")


def local_name(tag: str) -> str:
    """Strip the `{namespace}` prefix ElementTree puts on dump tags."""
    return _NAMESPACE_RE.sub("", tag)


def is_filtered_title(title: str) -> bool:
    title_low = (title or "").lower()
    return any(prefix in title_low for prefix in FILTER_TITLES)


def collapse_redirect_text(text: str | None) -> str:
    if not text:
        return ""
    if text.startswith(REDIRECT_TEXT_PREFIX):
        return REDIRECT_TEXT_PREFIX
    return text
