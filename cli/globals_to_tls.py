import logging
from dataclasses import dataclass, field

import batching_rewriter
import tls_worker_pool
from edit_aggregation import condense_rewrites
from tls_edits import Edit, WorkItem


@dataclass
class RewriteOutcome:
    edits: dict[str, list[Edit]]
    failures: dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def rewrite_globals(
    log: logging.Logger,
    work: WorkItem,
    parallelism: int,
    dry_run: bool = False,
    worker_command: list[str] | None = None,
) -> RewriteOutcome:
    """Make every eligible global and static in `work.source_files` thread-local.

    Analysis runs in parallel worker processes; nothing is written until every
    worker has succeeded and all proposals agree. Raises WorkerProcessFailure
    or ConflictingEdits (with no file touched) otherwise. Per-file write
    failures are logged and reported in the outcome.
    """
    records = tls_worker_pool.collect_raw_edits(log, work, parallelism, worker_command)
    condensed = condense_rewrites(log, records)
    log.info(
        "%d rewrite(s) across %d file(s)",
        sum(len(edits) for edits in condensed.values()),
        len(condensed),
    )

    if dry_run:
        return RewriteOutcome(edits=condensed)

    with batching_rewriter.BatchingRewriter(log) as rewriter:
        rewriter.replace_rewrites(condensed)
    return RewriteOutcome(edits=condensed, failures=rewriter.failures)
