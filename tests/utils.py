"""
In-memory stand-ins for the Telegram Bot API, OpenRouter and the file
watching backend, plus small helpers for writing session fixtures.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from pathlib import Path
from typing import Any

import httpx
from watchfiles import Change

from status_pin.settings import Settings

MODEL_ID = "anthropic/claude-sonnet-4"
CHAT_ID = "555"


def _ok(result: Any) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "result": result})


def _bad_request(description: str) -> httpx.Response:
    return httpx.Response(
        400, json={"ok": False, "error_code": 400, "description": description}
    )


class FakeTelegramAPI:
    """
    In-memory Bot API: keeps message texts, records every call and lets
    tests inject failures.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.messages: dict[int, str] = {}
        self.pinned: list[int] = []
        self.edit_responses: list[httpx.Response] = []
        self.raise_on_edit = False
        self.pin_error: str | None = None
        self._ids = itertools.count(100)

    def count(self, method: str) -> int:
        return sum(1 for m, _ in self.calls if m == method)

    def delete(self, message_id: int) -> None:
        self.messages.pop(message_id, None)

    def handle(self, request: httpx.Request, method: str, body: dict[str, Any]) -> httpx.Response:
        self.calls.append((method, body))

        if method == "sendMessage":
            message_id = next(self._ids)
            self.messages[message_id] = body["text"]
            return _ok({"message_id": message_id, "chat": {"id": int(body["chat_id"])}})

        if method == "editMessageText":
            if self.raise_on_edit:
                raise httpx.ConnectError("connection reset", request=request)
            if self.edit_responses:
                return self.edit_responses.pop(0)
            message_id = body["message_id"]
            if message_id not in self.messages:
                return _bad_request("Bad Request: message to edit not found")
            if self.messages[message_id] == body["text"]:
                return _bad_request(
                    "Bad Request: message is not modified: specified new message content "
                    "and reply markup are exactly the same as a current content"
                )
            self.messages[message_id] = body["text"]
            return _ok(True)

        if method == "pinChatMessage":
            if self.pin_error:
                return _bad_request(self.pin_error)
            self.pinned.append(body["message_id"])
            return _ok(True)

        raise AssertionError(f"unexpected Telegram method {method}")


class FakeOpenRouterAPI:
    def __init__(self) -> None:
        self.balance: dict[str, Any] = {
            "limit": 20.0,
            "limit_remaining": 15.5,
            "usage": 4.5,
            "usage_daily": 0.75,
        }
        self.models: list[dict[str, Any]] = [
            {"id": MODEL_ID, "context_length": 200_000},
            {"id": "openai/gpt-4o", "context_length": 128_000},
        ]
        self.balance_status = 200
        self.models_status = 200
        self.calls: list[str] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        assert request.headers["Authorization"].startswith("Bearer ")
        if path.endswith("/key"):
            if self.balance_status != 200:
                return httpx.Response(self.balance_status, json={"error": "upstream"})
            return httpx.Response(200, json={"data": self.balance})
        if path.endswith("/models"):
            if self.models_status != 200:
                return httpx.Response(self.models_status, json={"error": "upstream"})
            return httpx.Response(200, json={"data": self.models})
        raise AssertionError(f"unexpected OpenRouter path {path}")


class FakeUpstream:
    """
    httpx.MockTransport handler routing to the Telegram and OpenRouter fakes.
    """

    def __init__(self) -> None:
        self.telegram = FakeTelegramAPI()
        self.openrouter = FakeOpenRouterAPI()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.telegram.org":
            method = request.url.path.rsplit("/", 1)[-1]
            return self.telegram.handle(request, method, json.loads(request.content))
        if request.url.host == "openrouter.ai":
            return self.openrouter.handle(request)
        raise AssertionError(f"unexpected host {request.url.host}")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWatchBackend:
    """
    Stand-in for watchfiles: tests push change batches (or exceptions) into
    a per-path queue.
    """

    def __init__(self) -> None:
        self.queues: dict[Path, asyncio.Queue] = {}
        self.attached: list[Path] = []
        self.closed: list[Path] = []

    def __call__(self, path: Path, stop_event: asyncio.Event):
        return self._watch(Path(path), stop_event)

    async def _watch(self, path: Path, stop_event: asyncio.Event):
        queue: asyncio.Queue = asyncio.Queue()
        self.queues[path] = queue
        self.attached.append(path)
        try:
            while True:
                item = await queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            if self.queues.get(path) is queue:
                del self.queues[path]
            self.closed.append(path)

    def emit(self, path: Path | str, change: Change = Change.modified) -> None:
        self.queues[Path(path)].put_nowait({(change, str(path))})

    def fail(self, path: Path | str, exc: BaseException) -> None:
        self.queues[Path(path)].put_nowait(exc)


async def settle(rounds: int = 10) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def assistant_record(input_tokens: int, output_tokens: int = 0, cache_read: int = 0) -> dict:
    return {
        "type": "message",
        "message": {
            "role": "assistant",
            "content": [{"type": "text", "text": "ok"}],
            "usage": {"input": input_tokens, "output": output_tokens, "cacheRead": cache_read},
        },
    }


def write_jsonl(path: Path, *records: Any) -> None:
    lines = [r if isinstance(r, str) else json.dumps(r) for r in records]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def write_registry(settings: Settings, entries: dict[str, Any]) -> Path:
    path = settings.sessions_file
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


def registry_entry(session_file: Path, model: str = MODEL_ID, chat: str = CHAT_ID) -> dict:
    return {
        "sessionFile": str(session_file),
        "model": model,
        "deliveryContext": {"channel": "telegram", "to": f"telegram:{chat}"},
    }
