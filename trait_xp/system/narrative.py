"""
叙事上下文
挑出本次提升最大的特质，组装交给叙事生成器的上下文，不影响评分
"""

from datetime import datetime
from typing import Any

from ..storage.models import DiscomfortLevel, FrictionLevel, Stakes, TaskClassification, TraitResult


def pick_highlight(results: list[TraitResult]) -> TraitResult | None:
    """经验最高的特质，并列时取体系中靠前的"""
    best = None
    for r in results:
        if best is None or r.final_xp > best.final_xp:
            best = r
    return best


def time_of_day(hour: int) -> str:
    if 5 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def build_narrative_context(
    results: list[TraitResult],
    classification: TaskClassification,
    action_type: str,
    duration_minutes: float,
    tokens: int,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """组装叙事上下文，没有结果时返回 None"""
    highlight = pick_highlight(results)
    if highlight is None:
        return None

    now = now or datetime.now()
    return {
        "trait_name": highlight.trait.value,
        "final_xp": highlight.final_xp,
        "narrative_seed": highlight.narrative_seed,
        "action_type": action_type,
        "session_data": {
            "duration_minutes": duration_minutes,
            "task_type": classification.task_type.value,
            "high_friction": classification.friction_level == FrictionLevel.HIGH,
            "high_stakes": classification.stakes == Stakes.HIGH,
            "discomfort": classification.discomfort_level.value,
            "has_discomfort": classification.discomfort_level != DiscomfortLevel.NONE,
        },
        "user_context": {
            "time_of_day": time_of_day(now.hour),
            "day_of_week": now.strftime("%A"),
        },
        "token_bonus": tokens,
    }
