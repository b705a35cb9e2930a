"""Opt-in loguru logging for failtree training runs and model publications.

failtree logs through loguru but stays silent until ``enable_logging()`` is
called. Every record carries its facts as keyword fields in
``record["extra"]`` (sample counts, tree depth, split feature and threshold,
registry generation). The handler added here prints those fields as
``key=value`` pairs after the message, e.g.::

    2024-06-03 08:00:00.123 | TRAINING | train - Decision tree trained samples=500 depth=3 leaves=6 ...

Note:
    The first ``enable_logging()`` call removes loguru's default stderr handler
    (ID 0) so that failtree records are not printed twice. Re-add a handler
    explicitly if your application relied on that default.
"""

from __future__ import annotations

import contextlib
import sys
import warnings
from collections.abc import Callable
from typing import TYPE_CHECKING, Final, Literal, TextIO

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

# Sits between INFO (20) and WARNING (30): one line per trained or published model.
TRAINING_LEVEL: Final[str] = "TRAINING"
TRAINING_LEVEL_NUMBER: Final[int] = 25

_LOGURU_DEFAULT_HANDLER_ID: Final[int] = 0

type LogLevel = Literal["DEBUG", "TRAINING", "WARNING"]

type LogFormat = Literal["short", "full"]

_LOCATION_TEMPLATES: Final[dict[str, str]] = {
    "short": "<cyan>{function}</cyan>",
    "full": "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>",
}


def _register_training_level() -> None:
    """Register the TRAINING level, warning if another package claimed the name with a different number."""
    try:
        existing_level = logger.level(TRAINING_LEVEL)
    except ValueError:
        logger.level(TRAINING_LEVEL, no=TRAINING_LEVEL_NUMBER, icon="🌳")
        return
    if existing_level.no != TRAINING_LEVEL_NUMBER:
        warnings.warn(
            f"TRAINING level already registered with numeric value {existing_level.no},"
            f" expected {TRAINING_LEVEL_NUMBER}",
            stacklevel=2,
        )


_register_training_level()


class LoggingHandle:
    """The stderr (or custom sink) handler added by `enable_logging`.

    Disabling the handle removes its handler and silences failtree again, so
    wrap a training run in ``with enable_logging(): ...`` to scope the output.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     model = train(records, max_depth=4, min_samples_leaf=5)
    """

    def __init__(self, handler_id: int) -> None:
        """Initialize the handle.

        Args:
            handler_id (int): The loguru handler ID from logger.add().
        """
        self.handler_id: int | None = handler_id

    @property
    def is_active(self) -> bool:
        """Whether the handler is still installed."""
        return self.handler_id is not None

    def disable(self) -> None:
        """Remove the handler and turn failtree logging off. Safe to call twice."""
        if self.handler_id is None:
            return
        with contextlib.suppress(ValueError):
            logger.remove(self.handler_id)
        self.handler_id = None
        logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter context manager.

        Returns:
            LoggingHandle: This handle instance.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Disable logging on exit, whether or not the block raised."""
        self.disable()


def enable_logging(
    *,
    level: LogLevel = TRAINING_LEVEL,
    log_format: LogFormat = "short",
    sink: TextIO | None = None,
) -> LoggingHandle:
    """Print failtree records, with their structured fields, to a text stream.

    Args:
        level (LogLevel): Minimum level to print. "TRAINING" (default) shows one
            line per trained or published model; "DEBUG" adds every split
            chosen during induction.
        log_format (LogFormat): "short" (default) shows
            `timestamp | level | function - message fields`; "full" shows the
            module and line number in place of the bare function name.
        sink (TextIO | None): Stream to write to. Defaults to `sys.stderr`.

    Returns:
        LoggingHandle: Handle that removes the handler and silences failtree
            when disabled.
    """
    with contextlib.suppress(ValueError):
        logger.remove(_LOGURU_DEFAULT_HANDLER_ID)
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sink if sink is not None else sys.stderr,
        level=level,
        filter=PACKAGE_NAME,
        format=_make_formatter(log_format),
    )
    return LoggingHandle(handler_id)


def _make_formatter(log_format: LogFormat) -> Callable[[Record], str]:
    """Build a loguru format function that appends the record's fields as `key=value` pairs.

    Args:
        log_format (LogFormat): Which source location to show.

    Returns:
        Callable[[Record], str]: Function returning the loguru template for one record.
    """
    template = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "  # noqa: RUF027 - loguru format string
        f"{_LOCATION_TEMPLATES[log_format]} - <level>{{message}}</level>"
    )

    def formatter(record: Record) -> str:
        fields = " ".join(f"{key}={value}" for key, value in record["extra"].items())
        # Field text is spliced into the template, so literal braces must be doubled.
        fields = fields.replace("{", "{{").replace("}", "}}")
        return f"{template} {fields}\n{{exception}}" if fields else f"{template}\n{{exception}}"

    return formatter
