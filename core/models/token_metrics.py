"""TokenMetrics and ApiUsage models."""

from pydantic import BaseModel


class ApiUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class TokenMetrics(BaseModel):
    completion_tokens: int = 0
    start_time: float | None = None
    end_time: float | None = None
    paused_time: float = 0.0
    is_paused: bool = False
    is_active: bool = False
