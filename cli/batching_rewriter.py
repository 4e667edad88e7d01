import logging
from typing import Sequence

from diagnostics import rel_path
from tls_edits import Edit


def apply_rewrites_to_bytes(content: bytes, rewrites: Sequence[Edit]) -> bytes:
    """Apply non-overlapping rewrites, given in ascending offset order, in one pass.

    Offsets refer to `content` as given, so earlier rewrites never shift later ones."""
    pieces: list[bytes] = []
    cursor = 0
    for r in rewrites:
        if r.offset < cursor:
            raise ValueError(
                f"Rewrite overlaps or is out of order: offset={r.offset}, previous end={cursor}"
            )
        if r.offset + r.length > len(content):
            raise ValueError(
                f"Rewrite out of bounds: offset={r.offset}, length={r.length}, size={len(content)}"
            )
        pieces.append(content[cursor : r.offset])
        pieces.append(r.text.encode("utf-8"))
        cursor = r.offset + r.length
    pieces.append(content[cursor:])
    return b"".join(pieces)


class BatchingRewriter:
    """
    Context manager for batching rewrites to multiple files.
    Rewrites for each file are applied left to right in ascending offset order.
    Each file is read, rewritten and written back independently: a failure on
    one file is logged and recorded in `failures` without affecting the others.
    Nothing is written if the managed block raises.
    """

    def __init__(self, log: logging.Logger):
        self.log = log
        self.rewrites: dict[str, list[Edit]] = {}
        self.failures: dict[str, Exception] = {}

    def replace_rewrites(self, rewrites: dict[str, list[Edit]]):
        self.rewrites = rewrites

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            return False  # propagate exception

        self.apply_rewrites()

    def apply_rewrites(self) -> dict[str, Exception]:
        for filepath, file_rewrites in self.rewrites.items():
            if not file_rewrites:
                continue
            try:
                with open(filepath, "rb") as f:
                    content = f.read()
                rewritten = apply_rewrites_to_bytes(content, sorted(file_rewrites))
                with open(filepath, "wb") as f:
                    f.write(rewritten)
            except (OSError, ValueError) as e:
                self.log.error("error rewriting %s: %s", rel_path(filepath), e)
                self.failures[filepath] = e
            else:
                self.log.info("rewrote %s", rel_path(filepath))
        return self.failures
