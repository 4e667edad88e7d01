"""
Discovery of global and static variables that should become thread-local.

The codebases we rewrite were written assuming one process per logical
instance, so every global and every function-local `static` is implicitly
per-instance state. To host several instances as threads of one process,
each such variable needs its own copy per thread, which we get by inserting
the `__thread` storage keyword:

    static int x;            ->  static __thread int x;
    extern char *name;       ->  extern __thread char *name;
    int counter = 0;         ->  __thread int counter = 0;

Constants need no per-thread copy and are left alone.

We find the insertion point textually rather than from tokens: libclang
offers no API for the range of the type specifier of a declaration, and its
tokenizer returns an empty token list for `bool` declarations. So we take the
verbatim text of the declaration and skip over any leading storage-class-ish
keywords; whatever follows is where the type starts.

Declarations from headers are seen once per translation unit that includes
them. Each occurrence yields the same edit, which the aggregation step
(see edit_aggregation.py) deduplicates.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from clang.cindex import (  # type: ignore
    Cursor,
    CursorKind,
    Index,
    StorageClass,
    TLSKind,
    TranslationUnitLoadError,
)

import cindex_helpers
from caching_file_contents import CachingFileContents
from constants import DECL_PREFIX_KEYWORDS, SENTINEL_VARIABLE_NAME, TLS_KEYWORD_INSERTION
from diagnostics import PathLogAdapter
from tls_edits import RawEditRecord
from tls_errors import InsertionPointNotFound

THREAD_KW_INSERT_PREFIX_RE = re.compile(
    rb"\s*(?:(?:" + b"|".join(kw.encode() for kw in DECL_PREFIX_KEYWORDS) + rb")\b\s*)*"
)


@dataclass
class DeclarationCandidate:
    name: str
    type_spelling: str
    is_constant: bool
    storage_class: StorageClass | None
    at_file_scope: bool
    is_thread_local: bool
    # Where the declaration's extent lives; None when libclang can't say.
    file_path: str | None
    decl_start_byte_offset: int
    decl_end_byte_offset: int
    end_file_path: str | None
    line: int
    column: int

    def loc(self) -> str:
        return f"{self.file_path or '<unknown>'}:{self.line}:{self.column}"


def mk_DeclarationCandidate(node: Cursor, parent: Cursor) -> DeclarationCandidate:
    start = node.extent.start
    end = node.extent.end
    return DeclarationCandidate(
        name=node.spelling,
        type_spelling=node.type.spelling,
        is_constant=cindex_helpers.is_decl_constant(node),
        storage_class=node.storage_class,
        at_file_scope=parent.kind == CursorKind.TRANSLATION_UNIT,
        is_thread_local=node.tls_kind != TLSKind.NONE,
        file_path=start.file.name if start.file else None,
        decl_start_byte_offset=start.offset,
        decl_end_byte_offset=end.offset,
        end_file_path=end.file.name if end.file else None,
        line=node.location.line,
        column=node.location.column,
    )


def is_global_or_static(c: DeclarationCandidate) -> bool:
    return c.at_file_scope or c.storage_class == StorageClass.STATIC


SKIP_ALREADY_TLS = "already thread-local"


def reason_to_skip(c: DeclarationCandidate) -> str | None:
    """Returns None for declarations that should get the TLS keyword."""
    if not is_global_or_static(c):
        return "automatic variable"
    if c.name == SENTINEL_VARIABLE_NAME:
        return "sentinel declaration"
    if c.is_constant:
        return "constant"
    if c.is_thread_local:
        return SKIP_ALREADY_TLS
    return None


def find_thread_kw_insert_offset(decl_text: bytes) -> int:
    """Offset within `decl_text` just past any leading const/static/extern keywords."""
    m = THREAD_KW_INSERT_PREFIX_RE.match(decl_text)
    if m is None:
        # The pattern can match the empty string, so this should be unreachable.
        raise InsertionPointNotFound(f"no prefix match in {decl_text[:40]!r}")
    return m.end()


class GlobalsToTlsAnalyzer:
    """Proposes TLS keyword insertions for one file at a time.

    Owns a clang Index; not meant to be shared between threads."""

    def __init__(
        self,
        log: logging.Logger | logging.LoggerAdapter,
        index: Index,
        source_root: str | Path,
        include_paths: list[str],
    ):
        self.log = log
        self.index = index
        self.source_root = Path(source_root).resolve()
        self.clang_args = [f"-I{p}" for p in include_paths]
        self.contents = CachingFileContents()
        self._within_root: dict[str, bool] = {}

    def is_within_source_root(self, path: str) -> bool:
        if path not in self._within_root:
            self._within_root[path] = cindex_helpers.is_within(path, self.source_root)
        return self._within_root[path]

    def analyze_file(self, path: str) -> list[RawEditRecord]:
        flog = PathLogAdapter(self.log, path)
        flog.info("parsing file")

        try:
            tu = cindex_helpers.parse_tolerantly(self.index, path, self.clang_args)
        except TranslationUnitLoadError as e:
            flog.error("failed to parse: %s", e)
            return []

        rewrites: list[RawEditRecord] = []
        for node, (parent, _) in cindex_helpers.yield_matching_cursors(
            tu.cursor, [CursorKind.VAR_DECL]
        ):
            defined_in = cindex_helpers.cursor_file_name(node)
            if defined_in is not None and not self.is_within_source_root(defined_in):
                continue

            candidate = mk_DeclarationCandidate(node, parent)
            rewrite = self.rewrite_for_candidate(flog, candidate)
            if rewrite is not None:
                rewrites.append(rewrite)

        flog.debug("proposed %d rewrite(s)", len(rewrites))
        return rewrites

    def rewrite_for_candidate(
        self, flog: logging.LoggerAdapter, c: DeclarationCandidate
    ) -> RawEditRecord | None:
        skip = reason_to_skip(c)
        if skip == SKIP_ALREADY_TLS:
            # Either hand-written TLS in the codebase, or a rerun over our own output.
            flog.error("vardecl already has TLS kind: var=%s loc=%s", c.name, c.loc())
            return None
        if skip is not None:
            flog.debug("skipping %s (%s) at %s: %s", c.name, c.type_spelling, c.loc(), skip)
            return None

        try:
            offset = self.find_insert_loc(c)
        except InsertionPointNotFound as e:
            flog.warning("no insertion point for %s at %s: %s", c.name, c.loc(), e)
            return None

        assert c.file_path is not None
        return RawEditRecord(
            path=Path(c.file_path).resolve().as_posix(),
            offset=offset,
            length=0,
            text=TLS_KEYWORD_INSERTION,
        )

    def find_insert_loc(self, c: DeclarationCandidate) -> int:
        if c.file_path is None:
            raise InsertionPointNotFound("declaration has no file")
        if c.end_file_path != c.file_path:
            raise InsertionPointNotFound(
                f"start and end are in different files: {c.file_path} and {c.end_file_path}"
            )
        try:
            code = self.contents.get_fragment(
                c.file_path, c.decl_start_byte_offset, c.decl_end_byte_offset
            )
        except (OSError, ValueError) as e:
            raise InsertionPointNotFound(str(e)) from e
        return c.decl_start_byte_offset + find_thread_kw_insert_offset(code)
