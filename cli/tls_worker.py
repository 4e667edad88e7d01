import logging
import time

import cindex_helpers
from c_refact_tls import GlobalsToTlsAnalyzer
from tls_edits import RawEditRecord, WorkItem


def run_work_item(log: logging.Logger, item: WorkItem) -> list[RawEditRecord]:
    """Analyze every file of one shard. Runs inside a worker process.

    Raises FrontEndUnavailable if libclang can't be loaded; per-file problems
    are logged and do not stop the shard."""
    index = cindex_helpers.create_clang_index()
    analyzer = GlobalsToTlsAnalyzer(log, index, item.source_root, item.include_paths)

    start = time.time()
    all_rewrites: list[RawEditRecord] = []
    for path in item.source_files:
        all_rewrites.extend(analyzer.analyze_file(path))

    log.info(
        "worker analyzed %d file(s) in %.1f seconds, %d raw rewrite(s)",
        len(item.source_files),
        time.time() - start,
        len(all_rewrites),
    )
    return all_rewrites
