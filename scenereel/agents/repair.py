from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Literal

from scenereel.config import Settings

CORRECTIONS_LABEL = "IMPORTANT CORRECTIONS:"

BackoffMode = Literal["none", "fixed"]


def repair_prompt(current_prompt: str, fix_instructions: str) -> str:
    """在原 prompt 后追加一段修正说明；不删改已有内容"""
    return f"{current_prompt}\n\n{CORRECTIONS_LABEL} {fix_instructions}"


@dataclass(frozen=True)
class RetryPolicy:
    """场景级重试策略：最多几次、每次之前等多久、如何修 prompt"""

    max_attempts: int
    backoff: BackoffMode = "none"
    backoff_seconds: float = 0.0
    repair: Callable[[str, str], str] = field(default=repair_prompt)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff not in ("none", "fixed"):
            raise ValueError(f"unknown backoff mode: {self.backoff}")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")

    @classmethod
    def from_settings(cls, max_attempts: int, settings: Settings) -> "RetryPolicy":
        backoff: BackoffMode = "fixed" if settings.image_retry_backoff == "fixed" else "none"
        return cls(
            max_attempts=max_attempts,
            backoff=backoff,
            backoff_seconds=settings.image_retry_backoff_s,
        )

    def attempts(self) -> Iterator[int]:
        return iter(range(1, self.max_attempts + 1))

    def delay_before(self, attempt: int) -> float:
        if attempt <= 1 or self.backoff == "none":
            return 0.0
        return self.backoff_seconds
