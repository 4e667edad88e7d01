import logging
import os
from pathlib import Path
from typing import Any, MutableMapping

import click

LOGGER_NAME = "tlsify"


class ClickEchoHandler(logging.Handler):
    """Writes records to whatever click currently considers stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def make_logger(level: str | int = "INFO") -> logging.Logger:
    """Build the diagnostic sink for this process.

    The returned logger is passed explicitly to each component; nothing here
    touches the root logger, so embedding code keeps its own configuration.
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel(level.upper() if isinstance(level, str) else level)
    log.propagate = False
    if not log.handlers:
        handler = ClickEchoHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s [pid %(process)d] %(message)s"))
        log.addHandler(handler)
    return log


def rel_path(path: str | os.PathLike[str]) -> str:
    """Render `path` relative to the current directory when it lies beneath it."""
    p = Path(path)
    try:
        return p.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return p.as_posix()


class PathLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the (relative) file it concerns."""

    def __init__(self, log: logging.Logger | logging.LoggerAdapter, path: str | os.PathLike[str]):
        super().__init__(log, {"path": rel_path(path)})  # type: ignore[arg-type]

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        assert self.extra is not None
        return f"{self.extra['path']}: {msg}", kwargs
