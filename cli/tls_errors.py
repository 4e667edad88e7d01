from dataclasses import dataclass


class TlsRewriteError(Exception):
    pass


class FrontEndUnavailable(TlsRewriteError):
    """libclang could not be loaded, so no file can be analyzed at all."""


class InsertionPointNotFound(TlsRewriteError):
    pass


class WorkerProcessFailure(TlsRewriteError):
    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


@dataclass(frozen=True)
class EditConflict:
    """Distinct (length, text) proposals seen at one (path, offset)."""

    path: str
    offset: int
    line: int
    column: int
    proposals: tuple[tuple[int, str], ...]

    def location(self) -> str:
        return f"{self.path}:{self.line}:{self.column}"


class ConflictingEdits(TlsRewriteError):
    def __init__(self, conflicts: list[EditConflict]):
        super().__init__(f"{len(conflicts)} conflicting substitution(s)")
        self.conflicts = conflicts
