import logging
from typing import Iterable, TypeAlias

from caching_file_contents import CachingFileContents
from diagnostics import rel_path
from tls_edits import Edit, RawEditRecord, SourcePathStr
from tls_errors import ConflictingEdits, EditConflict

Substitution: TypeAlias = tuple[int, str]  # (length, text)


def group_rewrites(
    records: Iterable[RawEditRecord],
) -> dict[SourcePathStr, dict[int, set[Substitution]]]:
    """Collapse raw records to the distinct substitutions proposed at each (path, offset)."""
    by_path: dict[SourcePathStr, dict[int, set[Substitution]]] = {}
    for r in records:
        by_path.setdefault(r.path, {}).setdefault(r.offset, set()).add((r.length, r.text))
    return by_path


def condense_rewrites(
    log: logging.Logger, records: Iterable[RawEditRecord]
) -> dict[SourcePathStr, list[Edit]]:
    """Merge proposals from all workers into one ascending edit list per file.

    The same header is analyzed once per translation unit that includes it,
    so identical proposals are expected and merged. Differing proposals at one
    offset mean the translation units disagree about that declaration; every
    such conflict is logged and then reported together via ConflictingEdits,
    so the caller writes nothing at all.
    """
    contents = CachingFileContents()
    condensed: dict[SourcePathStr, list[Edit]] = {}
    conflicts: list[EditConflict] = []

    for path, by_offset in group_rewrites(records).items():
        for offset in sorted(by_offset):
            substs = by_offset[offset]
            if len(substs) > 1:
                conflict = mk_EditConflict(contents, path, offset, substs)
                log.error(
                    "conflicting substitutions at %s:%d:%d",
                    rel_path(path),
                    conflict.line,
                    conflict.column,
                )
                for length, text in conflict.proposals:
                    log.error("    offset=%d length=%d text=%r", offset, length, text)
                conflicts.append(conflict)
            else:
                ((length, text),) = substs
                condensed.setdefault(path, []).append(Edit(offset, length, text))

    if conflicts:
        raise ConflictingEdits(conflicts)
    return condensed


def mk_EditConflict(
    contents: CachingFileContents, path: str, offset: int, substs: set[Substitution]
) -> EditConflict:
    try:
        line, column = contents.line_col_at(path, offset)
    except OSError:
        line, column = 0, 0
    return EditConflict(
        path=path,
        offset=offset,
        line=line,
        column=column,
        proposals=tuple(sorted(substs)),
    )
