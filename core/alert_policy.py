"""
Alert Policy: three-tier mapping from alert tier to alert behavior.

| Tier       | priority | notification | audio | wakes device |
|------------|----------|--------------|-------|--------------|
| CRITICAL   | 1        | yes          | yes   | yes          |
| TRANSITION | 2        | yes          | no    | no           |
| REFERENCE  | 3        | no           | no    | no           |

Consulted by the trigger engine when firing events and by presentation code
for urgency rendering. Pure lookups, no state.
"""
from dataclasses import dataclass
from enum import Enum


class AlertTier(str, Enum):
    CRITICAL = "critical"      # 必须立即处理：通知 + 声音 + 唤醒
    TRANSITION = "transition"  # 状态切换：仅通知
    REFERENCE = "reference"    # 仅供参考：静默

    @property
    def priority(self) -> int:
        return behavior_for(self).priority_rank

    @property
    def triggers_notification(self) -> bool:
        return behavior_for(self).triggers_notification

    @property
    def plays_audio(self) -> bool:
        return behavior_for(self).plays_audio

    @property
    def wakes_device(self) -> bool:
        return behavior_for(self).wakes_device

    @property
    def importance(self) -> int:
        return behavior_for(self).importance

    @classmethod
    def from_token(cls, token: str) -> "AlertTier":
        """Resolve a tier name case-insensitively; raises KeyError when unknown."""
        return cls[token.strip().upper()]


@dataclass(frozen=True)
class AlertBehavior:
    triggers_notification: bool
    plays_audio: bool
    wakes_device: bool
    priority_rank: int  # lower = more urgent
    importance: int     # notification channel importance, 4 = pops on screen


_POLICY = {
    AlertTier.CRITICAL: AlertBehavior(
        triggers_notification=True, plays_audio=True, wakes_device=True,
        priority_rank=1, importance=4,
    ),
    AlertTier.TRANSITION: AlertBehavior(
        triggers_notification=True, plays_audio=False, wakes_device=False,
        priority_rank=2, importance=3,
    ),
    AlertTier.REFERENCE: AlertBehavior(
        triggers_notification=False, plays_audio=False, wakes_device=False,
        priority_rank=3, importance=2,
    ),
}


def behavior_for(tier: AlertTier) -> AlertBehavior:
    return _POLICY[tier]


def bypasses_quiet_mode(tier: AlertTier) -> bool:
    """Only critical alerts may break through quiet / do-not-disturb mode."""
    return tier is AlertTier.CRITICAL
