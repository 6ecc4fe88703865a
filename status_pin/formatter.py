from __future__ import annotations

import datetime
import html
import math

from .schemas import BalanceSnapshot, SessionDescriptor, UsageSnapshot

SEPARATOR = " │ "
PLACEHOLDER_PERCENT = "–%"

INDICATOR_NEUTRAL = "⚪"
INDICATOR_HEALTHY = "\U0001f7e2"  # 🟢
INDICATOR_CAUTION = "\U0001f7e1"  # 🟡
INDICATOR_CRITICAL = "\U0001f534"  # 🔴


def escape_html(value: object) -> str:
    return html.escape(str(value), quote=False)


def format_tokens(n: int) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.1f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}K"
    return str(n)


def format_dollars(amount: float | None, decimals: int = 2) -> str:
    return f"${(amount or 0.0):.{decimals}f}"


def balance_indicator(limit: float | None, remaining: float | None) -> str:
    if limit is None or limit == 0:
        return INDICATOR_NEUTRAL
    fraction = (remaining or 0.0) / limit
    if fraction > 0.25:
        return INDICATOR_HEALTHY
    if fraction > 0.10:
        return INDICATOR_CAUTION
    return INDICATOR_CRITICAL


def context_percent(usage: UsageSnapshot | None, context_window: int | None) -> str:
    if usage is None or not context_window:
        return PLACEHOLDER_PERCENT
    # Round half up.
    return f"{math.floor(usage.input_tokens / context_window * 100 + 0.5)}%"


def format_status_message(
    session: SessionDescriptor,
    usage: UsageSnapshot | None,
    balance: BalanceSnapshot | None,
    stale_balance: bool,
    *,
    now: datetime.datetime | None = None,
) -> str:
    """
    Render the pinned status line (Telegram HTML parse mode).
    """
    parts: list[str] = [
        f"\U0001f4ca {context_percent(usage, session.context_window)} ctx"
    ]

    if balance is not None:
        indicator = balance_indicator(balance.limit, balance.limit_remaining)
        stale_tag = "*" if stale_balance else ""
        if balance.limit is not None:
            parts.append(f"{indicator} {format_dollars(balance.limit_remaining)} left{stale_tag}")
        else:
            parts.append(f"{indicator} {format_dollars(balance.usage)} used{stale_tag}")
        parts.append(f"\U0001f4c5 {format_dollars(balance.usage_daily)} today")

    parts.append(f"\U0001f916 {escape_html(session.model)}")

    if usage is not None:
        token_parts = []
        if usage.output_tokens:
            token_parts.append(f"↗ {format_tokens(usage.output_tokens)} out")
        if usage.cache_read_tokens:
            token_parts.append(f"\U0001f4e6 {format_tokens(usage.cache_read_tokens)} cache")
        if token_parts:
            parts.append(" ".join(token_parts))

    now = now or datetime.datetime.now()
    parts.append(f"\U0001f550 {now:%H:%M}")

    return SEPARATOR.join(parts)


__all__ = ["balance_indicator", "format_status_message", "format_tokens"]
