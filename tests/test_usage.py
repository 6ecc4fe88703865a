from pathlib import Path

from status_pin.schemas import UsageSnapshot
from status_pin.usage import parse_last_usage

from tests.utils import assistant_record, write_jsonl


def test_returns_last_assistant_usage_ignoring_trailing_noise(tmp_path: Path) -> None:
    log = tmp_path / "session.jsonl"
    write_jsonl(
        log,
        {"type": "session", "id": "abc"},
        assistant_record(1000, 10),
        {"type": "message", "message": {"role": "user", "content": "hi"}},
        assistant_record(4200, 321, 999),
        {"type": "message", "message": {"role": "user", "content": "next"}},
        {"type": "message", "message": {"role": "assistant", "content": "streaming"}},
        '{"type": "message", "message": {"role": "assist',
        "not json at all",
        "[1, 2, 3]",
    )

    usage = parse_last_usage(log)

    assert usage == UsageSnapshot(input_tokens=4200, output_tokens=321, cache_read_tokens=999)


def test_malformed_lines_before_the_match_do_not_matter(tmp_path: Path) -> None:
    log = tmp_path / "session.jsonl"
    write_jsonl(log, "{{{", "", assistant_record(7), "garbage")

    assert parse_last_usage(log) == UsageSnapshot(input_tokens=7)


def test_missing_file_returns_none(tmp_path: Path) -> None:
    assert parse_last_usage(tmp_path / "does-not-exist.jsonl") is None


def test_no_qualifying_record_returns_none(tmp_path: Path) -> None:
    log = tmp_path / "session.jsonl"
    write_jsonl(
        log,
        {"type": "message", "message": {"role": "user", "content": "hi"}},
        {"type": "message", "message": {"role": "assistant", "usage": {}}},
    )

    assert parse_last_usage(log) is None


def test_missing_usage_fields_default_to_zero(tmp_path: Path) -> None:
    log = tmp_path / "session.jsonl"
    write_jsonl(log, {"message": {"role": "assistant", "usage": {"input": 12}}})

    usage = parse_last_usage(str(log))

    assert usage is not None
    assert usage.input_tokens == 12
    assert usage.output_tokens == 0
    assert usage.cache_read_tokens == 0
