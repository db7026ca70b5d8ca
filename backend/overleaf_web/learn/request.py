"""Learn page and image requests."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import quote

from overleaf_web.core.errors import NotFoundError, UnprocessableEntityError

SECTION_LATEX = "latex"
SECTION_HOW_TO = "how-to"
_INTERNAL_PAGES = re.compile(r"help:|special:|template:", re.IGNORECASE)
# Characters a URL path segment may carry unescaped.
_SEGMENT_SAFE = "$&+,:;=@"


@dataclass(slots=True)
class LearnPageRequest:
    section: str = ""
    page: str = ""
    has_question_mark: bool = False

    def preprocess(self) -> None:
        if not self.section and not self.page:
            return
        section = self.section.lower()
        if section == SECTION_LATEX:
            # The latex section has no overview page; send those to home.
            self.section = SECTION_LATEX if self.page else ""
        elif section in (SECTION_HOW_TO, "kb"):
            self.section = SECTION_HOW_TO
        elif not self.page:
            # /learn/foo_bar -> /learn/latex/foo_bar
            self.page = self.section
            self.section = SECTION_LATEX
        if self.has_question_mark and self.page and not self.page.endswith("?"):
            self.page += "?"

    def validate(self) -> None:
        if self.section not in ("", SECTION_LATEX, SECTION_HOW_TO):
            raise NotFoundError()
        if _INTERNAL_PAGES.search(self.page):
            raise UnprocessableEntityError("internal page")

    def pre_session_redirect(self, path: str) -> str:
        """Canonical location for ``path``; empty when it already is canonical."""
        self.preprocess()
        try:
            self.validate()
        except (NotFoundError, UnprocessableEntityError):
            return ""
        target = "/learn"
        if self.section:
            target += "/" + quote(self.section, safe=_SEGMENT_SAFE)
        if self.page:
            target += "/" + quote(self.page, safe=_SEGMENT_SAFE)
        return target if target != path else ""

    def wiki_page(self) -> str:
        if self.section == SECTION_HOW_TO:
            return "Kb/" + self.page if self.page else "Kb/Knowledge Base"
        if self.section == SECTION_LATEX:
            return self.page
        return "Main_Page"


def escape_path(path: str) -> str:
    """Escape a decoded request path the way canonical learn URLs are built."""
    return quote(path, safe="/" + _SEGMENT_SAFE)


@dataclass(slots=True)
class LearnPageResponse:
    redirect: str = ""
    # Seconds since the page was fetched; -1 when fetched for this request.
    age: int = -1
    title: str = ""
    title_locale: str = ""
    page_html: str = ""
    contents_html: str = ""


@dataclass(slots=True)
class LearnImageResponse:
    fs_path: str
    age: int = -1


__all__ = ["LearnPageRequest", "LearnPageResponse", "LearnImageResponse", "escape_path"]
