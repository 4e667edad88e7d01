from dataclasses import dataclass
from typing import Sequence, TypeAlias

from dataclasses_json import LetterCase, dataclass_json

# Resolved absolute POSIX path; the grouping key for every edit.
SourcePathStr: TypeAlias = str


@dataclass(frozen=True, order=True)
class Edit:
    """Replace `length` bytes at byte `offset` with `text`."""

    offset: int
    length: int
    text: str


@dataclass_json
@dataclass
class RawEditRecord:
    path: str
    offset: int
    length: int
    text: str

    def __post_init__(self):
        if self.offset < 0 or self.length < 0:
            raise ValueError(
                f"Negative edit span: offset={self.offset}, length={self.length}, file={self.path}"
            )


@dataclass_json(letter_case=LetterCase.CAMEL)  # type: ignore[arg-type]
@dataclass
class WorkItem:
    """One shard of the input, as handed to a single worker process."""

    include_paths: list[str]
    source_files: list[str]
    source_root: str

    def with_source_files(self, source_files: Sequence[str]) -> "WorkItem":
        return WorkItem(
            include_paths=list(self.include_paths),
            source_files=list(source_files),
            source_root=self.source_root,
        )


def encode_worker_response(records: Sequence[RawEditRecord]) -> str:
    return RawEditRecord.schema().dumps(list(records), many=True)  # type: ignore[attr-defined]


def decode_worker_response(blob: str) -> list[RawEditRecord]:
    """Raises ValueError, KeyError, TypeError or marshmallow.ValidationError on a bad blob."""
    return RawEditRecord.schema().loads(blob, many=True)  # type: ignore[attr-defined]
