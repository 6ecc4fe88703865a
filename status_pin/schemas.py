from pydantic import BaseModel, ConfigDict, Field


class SessionDescriptor(BaseModel):
    """
    The session currently monitored by the engine.

    Refreshed in place when the registry changes but the log file stays the
    same; replaced wholesale when the log file changes.
    """

    session_file: str = Field(..., description="Path of the JSONL interaction log")
    model: str = Field("unknown", description="Model identifier shown in the pin")
    chat_id: str = Field(..., description="Telegram chat the pin lives in")
    context_window: int | None = Field(
        None, description="Context window in tokens; None until resolved"
    )

    def refresh_from(self, other: "SessionDescriptor") -> None:
        self.model = other.model
        self.chat_id = other.chat_id
        if other.context_window:
            self.context_window = other.context_window


class UsageSnapshot(BaseModel):
    """
    Token usage of the most recent assistant turn.
    """

    model_config = ConfigDict(frozen=True)

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_tokens: int = 0


class BalanceSnapshot(BaseModel):
    """
    OpenRouter key balance as reported by /key.
    """

    limit: float | None = Field(None, description="Spending limit; None means unlimited")
    limit_remaining: float | None = Field(None, description="Remaining spend under the limit")
    usage: float = Field(0.0, description="Cumulative spend")
    usage_daily: float = Field(0.0, description="Spend for the current day")


class PinRecord(BaseModel):
    """
    Durable identity of the pinned status message.
    """

    message_id: int = Field(..., description="Telegram message id")
    chat_id: str = Field(..., description="Chat the message was sent to")
    session_file: str | None = Field(
        None, description="Session log that was being watched when the message was created"
    )


__all__ = ["BalanceSnapshot", "PinRecord", "SessionDescriptor", "UsageSnapshot"]
