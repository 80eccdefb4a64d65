import os
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class FollowUpPolicy:
    """Thresholds of the offer escalation ladder and the weather-alert cooldown."""

    remind_after_days: int = 7
    escalate_after_days: int = 14
    expire_after_days: int = 30
    max_follow_up_attempts: int = 3
    remind_cooldown: timedelta = timedelta(days=1)
    weather_cooldown: timedelta = timedelta(days=3)
    sweep_concurrency: int = 10

    def __post_init__(self) -> None:
        if not (
            0 < self.remind_after_days
            <= self.escalate_after_days
            <= self.expire_after_days
        ):
            raise ValueError(
                "Ladder thresholds must satisfy 0 < remind <= escalate <= expire"
            )
        if self.sweep_concurrency < 1:
            raise ValueError("sweep_concurrency must be at least 1")

    @classmethod
    def from_env(cls) -> "FollowUpPolicy":
        return cls(
            remind_after_days=int(os.environ.get("TAKLAGET_REMIND_AFTER_DAYS", "7")),
            escalate_after_days=int(
                os.environ.get("TAKLAGET_ESCALATE_AFTER_DAYS", "14")
            ),
            expire_after_days=int(os.environ.get("TAKLAGET_EXPIRE_AFTER_DAYS", "30")),
            max_follow_up_attempts=int(
                os.environ.get("TAKLAGET_MAX_FOLLOW_UP_ATTEMPTS", "3")
            ),
            remind_cooldown=timedelta(
                hours=float(os.environ.get("TAKLAGET_REMIND_COOLDOWN_HOURS", "24"))
            ),
            weather_cooldown=timedelta(
                hours=float(os.environ.get("TAKLAGET_WEATHER_COOLDOWN_HOURS", "72"))
            ),
            sweep_concurrency=int(os.environ.get("TAKLAGET_SWEEP_CONCURRENCY", "10")),
        )
