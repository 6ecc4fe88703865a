"""
OpenRouter client helpers: key balance and model context windows.

Both endpoints are authenticated with the same API key:

    GET {base}/key     -> {"data": {"limit", "limit_remaining", "usage", "usage_daily"}}
    GET {base}/models  -> {"data": [{"id": ..., "context_length": ...}, ...]}
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import httpx
from pydantic import ValidationError

from .errors import RemoteError
from .logging_config import logger
from .schemas import BalanceSnapshot

DEFAULT_CONTEXT_WINDOW = 131_072
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class ModelCapacityCache(dict):
    """
    Model id -> context length, filled from the /models listing and kept
    for the lifetime of the process.
    """

    def store_listing(self, raw_models: list[Any]) -> int:
        stored = 0
        for raw in raw_models:
            if not isinstance(raw, dict):
                continue
            model_id = raw.get("id")
            try:
                context_length = int(raw.get("context_length") or 0)
            except (TypeError, ValueError):
                continue
            if isinstance(model_id, str) and context_length > 0:
                self[model_id] = context_length
                stored += 1
        return stored


async def _get_json(
    client: httpx.AsyncClient, url: str, api_key: str, endpoint: str
) -> Any:
    headers = {"Authorization": f"Bearer {api_key}", "Accept": "application/json"}
    try:
        resp = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        raise RemoteError(f"OpenRouter {endpoint} request failed: {exc}") from exc

    if resp.status_code >= 400:
        raise RemoteError(
            f"OpenRouter {endpoint} returned {resp.status_code}",
            status_code=resp.status_code,
        )
    try:
        return resp.json()
    except ValueError as exc:
        raise RemoteError(
            f"OpenRouter {endpoint} returned invalid JSON",
            status_code=resp.status_code,
        ) from exc


async def fetch_balance(
    client: httpx.AsyncClient,
    api_key: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
) -> BalanceSnapshot:
    """
    Query the current key balance. Raises RemoteError on any failure.
    """
    payload = await _get_json(client, f"{base_url.rstrip('/')}/key", api_key, "/key")
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise RemoteError("OpenRouter /key returned an unexpected payload")

    try:
        return BalanceSnapshot(
            limit=data.get("limit"),
            limit_remaining=data.get("limit_remaining"),
            usage=data.get("usage") or 0.0,
            usage_daily=data.get("usage_daily") or 0.0,
        )
    except ValidationError as exc:
        raise RemoteError(f"OpenRouter /key returned a malformed balance: {exc}") from exc


async def fetch_context_window(
    client: httpx.AsyncClient,
    api_key: str,
    model_id: str,
    cache: ModelCapacityCache,
    *,
    base_url: str = DEFAULT_BASE_URL,
) -> int:
    """
    Return the context window for ``model_id``.

    The whole model listing is cached on the first call, so later lookups
    for any model are served locally. Models missing from the listing get
    DEFAULT_CONTEXT_WINDOW. Raises RemoteError when the listing cannot be
    fetched.
    """
    cached = cache.get(model_id)
    if cached:
        return cached

    payload = await _get_json(
        client, f"{base_url.rstrip('/')}/models", api_key, "/models"
    )
    raw_models: list[Any] = []
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        raw_models = payload["data"]
    elif isinstance(payload, list):
        raw_models = payload

    stored = cache.store_listing(raw_models)
    logger.debug("Cached context windows for %d OpenRouter models", stored)
    return cache.get(model_id) or DEFAULT_CONTEXT_WINDOW


class BalanceCache:
    """
    Last successfully fetched balance.

    A failed refresh keeps the previous snapshot; the returned flag tells
    the caller whether what it is about to render is stale.
    """

    def __init__(self) -> None:
        self.snapshot: BalanceSnapshot | None = None

    async def refresh(self, fetcher: Callable[[], Awaitable[BalanceSnapshot]]) -> bool:
        try:
            self.snapshot = await fetcher()
        except RemoteError as exc:
            logger.warning("Balance fetch failed, using cache: %s", exc)
            return self.snapshot is not None
        return False


__all__ = [
    "DEFAULT_CONTEXT_WINDOW",
    "BalanceCache",
    "ModelCapacityCache",
    "fetch_balance",
    "fetch_context_window",
]
