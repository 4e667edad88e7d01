import logging
import math
import os
import subprocess
import sys
import time
from pathlib import Path
from typing import Sequence, TypeVar

from marshmallow import ValidationError

from constants import WORKER_SUBCOMMAND
from tls_edits import RawEditRecord, WorkItem, decode_worker_response
from tls_errors import WorkerProcessFailure

T = TypeVar("T")


def default_parallelism() -> int:
    return os.cpu_count() or 1


def partition_into_shards(items: Sequence[T], parallelism: int) -> list[list[T]]:
    """Split `items` into at most `parallelism` contiguous, non-empty shards."""
    if parallelism < 1:
        raise ValueError(f"parallelism must be positive, got {parallelism}")
    if not items:
        return []
    shard_size = math.ceil(len(items) / parallelism)
    return [list(items[i : i + shard_size]) for i in range(0, len(items), shard_size)]


FORWARDED_LOG_LEVELS = (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR)


def forwarded_log_level(level: int) -> str:
    """Round `level` down to a name the worker's --log-level option accepts."""
    named = [lvl for lvl in FORWARDED_LOG_LEVELS if lvl <= level]
    return logging.getLevelName(named[-1] if named else logging.DEBUG)


def default_worker_command(log_level: str = "INFO") -> list[str]:
    # Running main.py as a script puts this directory on sys.path, so the
    # worker can import its sibling modules whether or not we're installed.
    return [
        sys.executable,
        Path(__file__).with_name("main.py").as_posix(),
        WORKER_SUBCOMMAND,
        "--log-level",
        log_level,
    ]


def describe_shard(item: WorkItem) -> str:
    return f"{len(item.source_files)} file(s) starting with {item.source_files[0]}"


def collect_raw_edits(
    log: logging.Logger,
    work: WorkItem,
    parallelism: int,
    worker_command: list[str] | None = None,
) -> list[RawEditRecord]:
    """Fan `work` out over one worker process per shard and gather every proposal.

    Every worker is started before any is awaited. The first failing worker
    aborts the whole collection; workers still running at that point are killed.
    """
    if worker_command is None:
        worker_command = default_worker_command(forwarded_log_level(log.getEffectiveLevel()))

    shards = partition_into_shards(work.source_files, parallelism)
    log.info("analyzing %d file(s) with %d worker(s)", len(work.source_files), len(shards))

    start = time.time()
    workers: list[tuple[WorkItem, subprocess.Popen]] = []
    try:
        for shard in shards:
            item = work.with_source_files(shard)
            try:
                p = subprocess.Popen(worker_command, stdin=subprocess.PIPE, stdout=subprocess.PIPE)
            except OSError as e:
                raise WorkerProcessFailure(
                    f"could not start worker {worker_command[0]!r} ({describe_shard(item)}): {e}"
                ) from e
            workers.append((item, p))
            assert p.stdin is not None
            try:
                with p.stdin:
                    p.stdin.write(item.to_json().encode("utf-8"))  # type: ignore[attr-defined]
            except BrokenPipeError:
                # The exit status check below reports this worker as failed.
                log.warning("worker %d exited before reading its request", p.pid)

        records: list[RawEditRecord] = []
        for item, p in workers:
            assert p.stdout is not None
            with p.stdout:
                response = p.stdout.read()
            returncode = p.wait()
            if returncode != 0:
                raise WorkerProcessFailure(
                    f"worker {p.pid} ({describe_shard(item)}) exited with status {returncode}",
                    returncode,
                )
            try:
                records.extend(decode_worker_response(response.decode("utf-8")))
            except (ValueError, KeyError, TypeError, ValidationError) as e:
                raise WorkerProcessFailure(
                    f"worker {p.pid} ({describe_shard(item)}) sent an undecodable response: {e}"
                ) from e
    finally:
        for _, p in workers:
            if p.poll() is None:
                p.kill()
                p.wait()

    log.info(
        "collected %d raw rewrite(s) in %.1f seconds", len(records), time.time() - start
    )
    return records
