from typing import TypeAlias

FilePathStr: TypeAlias = str


class CachingFileContents:
    """Reads each file at most once; all offsets are byte offsets."""

    def __init__(self) -> None:
        self.cached_bytes: dict[FilePathStr, bytes] = {}

    def get_bytes(self, filepath: FilePathStr) -> bytes:
        if filepath not in self.cached_bytes:
            with open(filepath, "rb") as f:
                self.cached_bytes[filepath] = f.read()
        return self.cached_bytes[filepath]

    def get_fragment(self, filepath: FilePathStr, lo: int, hi: int) -> bytes:
        content = self.get_bytes(filepath)
        if not 0 <= lo <= hi <= len(content):
            raise ValueError(f"Span [{lo}, {hi}) outside {filepath} ({len(content)} bytes)")
        return content[lo:hi]

    def line_col_at(self, filepath: FilePathStr, offset: int) -> tuple[int, int]:
        """1-based line and column (in bytes) of `offset`, as clang would report it."""
        content = self.get_bytes(filepath)
        line_start = content.rfind(b"\n", 0, offset) + 1
        return content.count(b"\n", 0, offset) + 1, offset - line_start + 1
