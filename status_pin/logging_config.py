import datetime
import logging
from contextlib import suppress
from pathlib import Path
from typing import Callable, TextIO
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

_LOGGING_CONFIGURED = False


def _resolve_tzinfo(timezone_name: str | None) -> datetime.tzinfo:
    if timezone_name:
        with suppress(ZoneInfoNotFoundError):
            return ZoneInfo(timezone_name)
    return datetime.datetime.now().astimezone().tzinfo or datetime.timezone.utc


class LocalTimezoneFormatter(logging.Formatter):
    """
    ISO-8601 timestamps (millisecond precision) in LOG_TIMEZONE, or the
    system zone when it is unset or unknown.
    """

    def __init__(self, fmt: str = LOG_FORMAT, *, timezone_name: str | None = None) -> None:
        super().__init__(fmt)
        self._tzinfo = _resolve_tzinfo(timezone_name)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        created = datetime.datetime.fromtimestamp(record.created, tz=self._tzinfo)
        return created.isoformat(timespec="milliseconds")


class DailyFileHandler(logging.Handler):
    """
    Appends to ``<log_dir>/<prefix>-YYYY-MM-DD.log``, switching files when the
    date changes and pruning all but the newest ``backup_count`` files.
    """

    def __init__(
        self,
        log_dir: Path,
        filename_prefix: str = "status-pin",
        backup_count: int = 7,
        encoding: str = "utf-8",
        now_fn: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        super().__init__()
        self.log_dir = Path(log_dir)
        self.filename_prefix = filename_prefix
        self.backup_count = backup_count
        self.encoding = encoding
        self._now_fn = now_fn
        self._day: datetime.date | None = None
        self._stream: TextIO | None = None
        self._open_for_today()

    def _open_for_today(self) -> TextIO:
        today = self._now_fn().date()
        if self._stream is not None and self._day == today:
            return self._stream

        self._close_stream()
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._day = today
        self._stream = open(
            self.log_dir / f"{self.filename_prefix}-{today.isoformat()}.log",
            "a",
            encoding=self.encoding,
        )
        self._prune()
        return self._stream

    def _prune(self) -> None:
        if self.backup_count <= 0:
            return
        dated = sorted(self.log_dir.glob(f"{self.filename_prefix}-*.log"))
        for old in dated[: -self.backup_count]:
            with suppress(OSError):
                old.unlink()

    def _close_stream(self) -> None:
        if self._stream is not None:
            with suppress(OSError):
                self._stream.close()
            self._stream = None

    def emit(self, record: logging.LogRecord) -> None:
        try:
            stream = self._open_for_today()
            stream.write(self.format(record) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            self._close_stream()
        finally:
            super().close()


def setup_logging() -> None:
    """
    Send ``status_pin`` records to the daily file and everything to stderr.

    Safe to call more than once.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    level = logging.getLevelName(str(settings.log_level).upper())
    if not isinstance(level, int):
        level = logging.INFO
    formatter = LocalTimezoneFormatter(timezone_name=settings.log_timezone)

    file_handler = DailyFileHandler(settings.log_dir)
    file_handler.setFormatter(formatter)
    app_logger = logging.getLogger("status_pin")
    app_logger.setLevel(level)
    app_logger.addHandler(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if not any(
        type(handler) is logging.StreamHandler for handler in root_logger.handlers
    ):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # Request lines carry the bot token in the URL.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _LOGGING_CONFIGURED = True


logger = logging.getLogger("status_pin")
