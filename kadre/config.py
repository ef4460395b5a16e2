import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    fast_model: str
    reasoning_model: str
    cron_secret: Optional[str]
    jwt_secret: Optional[str]
    engagement_lookback_weeks: int
    assistant_max_iterations: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        fast_model=os.getenv("OPENAI_FAST_MODEL", "gpt-4o-mini"),
        reasoning_model=os.getenv("OPENAI_REASONING_MODEL", "gpt-4o"),
        cron_secret=os.getenv("CRON_SECRET") or None,
        jwt_secret=os.getenv("SUPABASE_JWT_SECRET") or None,
        engagement_lookback_weeks=max(1, _int_env("ENGAGEMENT_LOOKBACK_WEEKS", 4)),
        assistant_max_iterations=max(1, _int_env("ASSISTANT_MAX_ITERATIONS", 5)),
    )
