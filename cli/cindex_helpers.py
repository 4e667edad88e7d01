import os
from pathlib import Path
from typing import Generator, TypeAlias

from clang.cindex import (  # type: ignore
    Config,
    Cursor,
    CursorKind,
    Index,
    LibclangError,
    TranslationUnit,
    Type,
    TypeKind,
)

from constants import LIBCLANG_PATH_ENV_VAR, PARSE_KEEP_GOING
from tls_errors import FrontEndUnavailable

AncestorChain: TypeAlias = tuple[Cursor, "AncestorChain | None"]

ARRAY_TYPE_KINDS = (
    TypeKind.CONSTANTARRAY,
    TypeKind.INCOMPLETEARRAY,
    TypeKind.VARIABLEARRAY,
    TypeKind.DEPENDENTSIZEDARRAY,
)


def create_clang_index() -> Index:
    """Create a clang Index, honoring an explicitly configured libclang if there is one."""

    if not Config.loaded:
        libclang_path = os.environ.get(LIBCLANG_PATH_ENV_VAR)
        if libclang_path:
            Config.set_library_file(libclang_path)

    try:
        return Index.create()
    except (LibclangError, OSError) as e:
        raise FrontEndUnavailable(f"could not initialize libclang: {e}") from e


def parse_tolerantly(index: Index, path: str, args: list[str]) -> TranslationUnit:
    """Parse `path`, continuing past errors so one bad construct doesn't lose the file.

    Raises clang.cindex.TranslationUnitLoadError if libclang produces no TU at all."""
    return index.parse(
        path=path,
        args=args,
        options=TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD | PARSE_KEEP_GOING,
    )


def yield_matching_cursors(
    root_cursor: Cursor, cursor_kinds_of_interest: list[CursorKind]
) -> Generator[tuple[Cursor, AncestorChain], None, None]:
    """Yield every cursor of the given kinds, at any depth, with its ancestors.

    Children are always visited, including children of yielded cursors."""

    worklist: list[AncestorChain] = [(root_cursor, None)]
    while worklist:
        current, ancestors = worklist.pop()
        if current.kind in cursor_kinds_of_interest:
            assert ancestors is not None
            yield (current, ancestors)

        for child in current.get_children():
            worklist.append((child, (current, ancestors)))  # type: ignore


def is_type_constant(ty: Type) -> bool:
    """True for const-qualified types and arrays of (arrays of...) const elements."""
    if ty.is_const_qualified():
        return True
    if ty.kind in ARRAY_TYPE_KINDS:
        return is_type_constant(ty.element_type)
    return False


def is_decl_constant(cursor: Cursor) -> bool:
    # The canonical type sees through typedefs like `typedef const int cint;`.
    return is_type_constant(cursor.type) or is_type_constant(cursor.type.get_canonical())


def cursor_file_name(cursor: Cursor) -> str | None:
    loc = cursor.location
    return loc.file.name if loc.file else None


def is_within(path: str, root: Path) -> bool:
    return Path(path).resolve().is_relative_to(root)
