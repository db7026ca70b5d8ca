"""Parse MediaWiki ``action=parse`` responses into renderable page content."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_OVERLEAF_LINKS = re.compile(r"https://www\.overleaf\.com(/docs|/learn)")
HIDDEN_CATEGORY = "Hide"
MAIN_PAGE_TITLE = "Main Page"


@dataclass(slots=True)
class PageContent:
    html: str = ""
    redirect: str = ""
    title: str = ""
    title_locale: str = ""
    exists: bool = False
    fetched_at: float = 0.0


def parse_page(raw: dict[str, Any], site_url: str) -> PageContent:
    """Turn the decoded API payload into a :class:`PageContent`.

    Pages without a revision and pages in the hidden category do not exist.
    Links back to the public docs and learn pages are rewritten to ``site_url``.
    """
    parsed = raw.get("parse") or {}
    if not parsed.get("revid"):
        return PageContent(exists=False)
    categories = parsed.get("categories") or []
    if any(category.get("*") == HIDDEN_CATEGORY for category in categories):
        return PageContent(exists=False)
    for redirect in parsed.get("redirects") or []:
        target = redirect.get("to") or ""
        if target:
            return PageContent(redirect=target)

    text = (parsed.get("text") or {}).get("*", "")
    base = site_url.rstrip("/")
    html = _OVERLEAF_LINKS.sub(lambda match: base + match.group(1), text)

    title = parsed.get("title", "")
    title = title.rsplit("/", 1)[-1]
    title_locale = ""
    if title == MAIN_PAGE_TITLE:
        title_locale = "Documentation"
        title = ""
    return PageContent(html=html, title=title, title_locale=title_locale, exists=True)


__all__ = ["PageContent", "parse_page"]
