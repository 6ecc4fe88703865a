"""
Usage extraction from the session JSONL log.

The log is append-only and unbounded, and only the latest assistant turn
matters, so records are walked from the end backward and the scan stops at
the first assistant message that carries a usage block.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Any

from .schemas import UsageSnapshot


def _iter_records_reversed(lines: Sequence[str]) -> Iterator[dict[str, Any]]:
    """
    Yield parsed records from last to first, silently dropping lines that
    are not valid JSON objects (partial writes, corruption).
    """
    for line in reversed(lines):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except ValueError:
            continue
        if isinstance(record, dict):
            yield record


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _usage_from_record(record: dict[str, Any]) -> UsageSnapshot | None:
    message = record.get("message")
    if not isinstance(message, dict) or message.get("role") != "assistant":
        return None
    usage = message.get("usage")
    if not isinstance(usage, dict) or not usage:
        return None
    return UsageSnapshot(
        input_tokens=_as_int(usage.get("input")),
        output_tokens=_as_int(usage.get("output")),
        cache_read_tokens=_as_int(usage.get("cacheRead")),
    )


def parse_last_usage(session_file: str | Path) -> UsageSnapshot | None:
    """
    Return the usage of the last assistant record, or None when the log
    does not exist yet or holds no qualifying record.
    """
    path = Path(session_file)
    try:
        raw = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None

    for record in _iter_records_reversed(raw.strip().split("\n")):
        snapshot = _usage_from_record(record)
        if snapshot is not None:
            return snapshot
    return None


__all__ = ["parse_last_usage"]
