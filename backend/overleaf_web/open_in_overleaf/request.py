"""Open-in-overleaf requests: snippets, defaults and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Sequence
from urllib.parse import unquote_plus

from overleaf_web.core.errors import ValidationError
from overleaf_web.models.paths import (
    MAX_DOC_LENGTH,
    file_name_from_url,
    path_type,
    validate_path,
    validate_project_name,
    validate_snapshot,
    validate_url,
)
from overleaf_web.proxy.buffer import BufferedFile

DEFAULT_COMPILER = "pdflatex"
COMPILERS = ("pdflatex", "latex", "xelatex", "lualatex")
DEFAULT_PROJECT_NAME = "Untitled"
MAIN_FILE = "main.tex"
SOURCE_PARAMS = ("zip_uri", "snip", "snip_uri", "encoded_snip")


@dataclass(slots=True)
class Snippet:
    """One named piece of inline or remote content."""

    path: str = ""
    snapshot: str = ""
    url: str | None = None
    index: int = 0
    file: BufferedFile | None = None

    def validate(self, max_doc_length: int = MAX_DOC_LENGTH) -> None:
        validate_path(self.path)
        if self.url is not None:
            validate_url(self.url)
            if self.snapshot:
                raise ValidationError("cannot specify snapshot and url")
        else:
            validate_snapshot(self.snapshot, max_doc_length)

    def cleanup(self) -> None:
        if self.file is not None:
            self.file.cleanup()


@dataclass(slots=True)
class OpenInOverleafRequest:
    user_id: str | None = None
    compiler: str = ""
    project_name: str = ""
    has_default_name: bool = False
    snippets: list[Snippet] = field(default_factory=list)
    zip_url: str | None = None

    def preprocess(self) -> None:
        """Fill in defaults and give every snippet a file name."""
        if not self.project_name:
            self.has_default_name = True
            self.project_name = DEFAULT_PROJECT_NAME
        if not self.compiler:
            self.compiler = DEFAULT_COMPILER

        for idx, snippet in enumerate(self.snippets):
            snippet.index = idx

        has_main_file = False
        inlined_docs = 0
        for snippet in self.snippets:
            if snippet.url is None:
                inlined_docs += 1
            elif not snippet.path:
                snippet.path = file_name_from_url(snippet.url)
            if snippet.path == MAIN_FILE:
                has_main_file = True

        untitled = 0
        for snippet in self.snippets:
            if snippet.url is not None:
                continue
            if not snippet.path and not has_main_file and untitled == 0:
                snippet.path = MAIN_FILE
                has_main_file = True
            if path_type(snippet.path) == "":
                if inlined_docs == 1 and not has_main_file:
                    snippet.path = MAIN_FILE
                    has_main_file = True
                elif snippet.path:
                    snippet.path += ".tex"
                else:
                    untitled += 1
                    snippet.path = f"untitled-doc-{untitled}.tex"

    def validate(self, max_doc_length: int = MAX_DOC_LENGTH) -> None:
        if self.compiler and self.compiler not in COMPILERS:
            raise ValidationError(f"compiler: unknown compiler {self.compiler!r}")
        try:
            validate_project_name(self.project_name)
        except ValidationError as exc:
            raise ValidationError(f"project_name: {exc}") from exc
        if self.snippets and self.zip_url is not None:
            raise ValidationError("specify one of snippets or zip url")
        if not self.snippets and self.zip_url is None:
            raise ValidationError("specify one of snippets or zip url")
        for idx, snippet in enumerate(self.snippets):
            try:
                snippet.validate(max_doc_length)
            except ValidationError as exc:
                raise ValidationError(f"snippets[{idx}]: {exc}") from exc
        if self.zip_url is not None:
            try:
                validate_url(self.zip_url)
            except ValidationError as exc:
                raise ValidationError(f"zip_url: {exc}") from exc

    def populate_from_params(self, params: Mapping[str, Sequence[str]]) -> None:
        """Build the request from the legacy query/form parameters."""
        present = sum(1 for name in SOURCE_PARAMS if params.get(name))
        if present != 1:
            raise ValidationError("specify one of snip/snip_uri/encoded_snip/zip_uri")

        engine = _first(params, "engine")
        if engine:
            if engine == "latex_dvipdf":
                engine = "latex"
            if engine not in COMPILERS:
                raise ValidationError(f"engine: unknown compiler {engine!r}")
            self.compiler = engine

        zip_uri = _first(params, "zip_uri")
        if zip_uri:
            try:
                self.zip_url = validate_url(zip_uri)
            except ValidationError as exc:
                raise ValidationError(f"zip_uri: {exc}") from exc
            return

        snippets: list[Snippet] = []
        for raw in params.get("encoded_snip", ()):
            snippets.append(Snippet(snapshot=unquote_plus(raw)))
        for raw in params.get("snip", ()):
            snippets.append(Snippet(snapshot=raw))
        for idx, raw in enumerate(params.get("snip_uri", ())):
            try:
                snippets.append(Snippet(url=validate_url(raw)))
            except ValidationError as exc:
                raise ValidationError(f"snip_uri[{idx}]: {exc}") from exc

        names = list(params.get("snip_name", ()))
        for idx, snippet in enumerate(snippets):
            if idx >= len(names):
                break
            try:
                validate_path(names[idx])
            except ValidationError as exc:
                raise ValidationError(f"snip_name[{idx}]: {exc}") from exc
            snippet.path = names[idx]
        self.snippets = snippets

        if not self.project_name and len(names) == 1:
            try:
                validate_project_name(names[0])
            except ValidationError:
                return
            self.has_default_name = True
            self.project_name = names[0]


def _first(params: Mapping[str, Sequence[str]], name: str) -> str:
    values = params.get(name) or ()
    return values[0] if values else ""


DOCUMENT_CLASS_MARKER = "\\documentclass"
DOCUMENT_CLASS_PROBE = 10 * 1024

_HEADER = """\\documentclass[12pt]{{article}}
\\usepackage[english]{{babel}}
\\usepackage[utf8]{{inputenc}}
\\usepackage{{amsmath}}
\\usepackage{{tikz}}
\\title{{{title}}}
\\begin{{document}}
"""
_FOOTER = "\n\\end{document}\n"


def add_document_class(snapshot: str, title: str, max_doc_length: int = MAX_DOC_LENGTH) -> str:
    """Wrap a bare LaTeX body in a minimal article preamble.

    Bodies that declare a document class within the first 10KB are kept as
    they are, and so are bodies that would exceed the document size limit.
    """
    if DOCUMENT_CLASS_MARKER in snapshot[:DOCUMENT_CLASS_PROBE]:
        return snapshot
    wrapped = _HEADER.format(title=title) + snapshot + _FOOTER
    if len(wrapped) > max_doc_length:
        return snapshot
    return wrapped


__all__ = [
    "Snippet",
    "OpenInOverleafRequest",
    "add_document_class",
    "DEFAULT_COMPILER",
    "COMPILERS",
    "MAIN_FILE",
]
