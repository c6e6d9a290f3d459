"""loguru sinks for the command-line tool.

``LogConsumers`` in ``config.json`` lists the sinks, for example::

    [{"type": "console"}, {"type": "file", "level": "DEBUG", "rotation": "1 MB"}]

A file sink without a ``path`` writes to ``LogFile``.
"""

import sys
from pathlib import Path
from typing import Any, Callable

from loguru import logger

DEFAULT_LOG_FILE = "opensearch.log"

_CONSOLE_FORMAT = "<level>{level:<8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{line} - {message}"


def _add_console(level: str, log_file: str) -> str:
    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)
    return f"console (stderr, {level})"


def _add_file(
    level: str,
    log_file: str,
    path: str | None = None,
    rotation: str = "5 MB",
    retention: int = 3,
) -> str:
    target = Path(path or log_file)
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.add(target, level=level, format=_FILE_FORMAT, rotation=rotation, retention=retention)
    return f"file ({target}, {level})"


_SINKS: dict[str, Callable[..., str]] = {
    "console": _add_console,
    "file": _add_file,
}


def setup_logging(
    level: str = "INFO",
    consumers: list[dict[str, Any]] | None = None,
    log_file: str = DEFAULT_LOG_FILE,
) -> list[str]:
    """Replace loguru's sinks with the configured ones and describe each."""
    logger.remove()

    if consumers is None:
        consumers = [{"type": "console"}]

    descriptions: list[str] = []
    for config in consumers:
        sink_type = config.get("type", "")
        add_sink = _SINKS.get(sink_type)
        if add_sink is None:
            logger.warning(f"Unknown log consumer type: {sink_type!r}")
            continue

        options = {k: v for k, v in config.items() if k not in ("type", "level")}
        descriptions.append(add_sink(config.get("level", level), log_file, **options))

    return descriptions
