"""
Status pin package for OpenClaw.

This package contains:
- settings: configuration loaded from the environment
- logging_config: shared logging setup
- credentials: Telegram bot token and OpenRouter key resolution
- session_discovery: active session lookup in sessions.json
- usage: latest token usage from the session JSONL log
- openrouter: balance and context window queries
- formatter: status line rendering
- pin_store / publisher / telegram: pinned message reconciliation
- watchers: session log and registry watchers
- engine: the update cycle tying everything together
- hook: gateway startup hook
"""
