"""
数据模型 - 评分引擎的数据层定义
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..core.traits import Trait

# 单个会话时长上限 (分钟)
MAX_SESSION_MINUTES = 24 * 60


class TaskType(str, Enum):
    SCHEDULED = "scheduled"
    OPPORTUNITY = "opportunity"


class FrictionLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Stakes(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DiscomfortLevel(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    HIGH = "high"


class EventKind(str, Enum):
    DISTRACTION = "distraction"            # 分心
    METHOD_SWITCH = "method_switch"        # 换方法
    URGE_OVERCOME = "urge_overcome"        # 克服冲动
    APPROACH_CHANGE = "approach_change"    # 调整思路
    BREAK = "break"                        # 休息
    LOCATION_SWITCH = "location_switch"    # 换地点


class UrgeLevel(str, Enum):
    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"


class StartTiming(str, Enum):
    EARLY = "early"
    ON_TIME = "on_time"
    DELAYED = "delayed"


@dataclass(frozen=True)
class TaskClassification:
    """任务分类 (只读，由分类采集流程维护)"""
    task_type: TaskType = TaskType.SCHEDULED
    friction_level: FrictionLevel = FrictionLevel.LOW
    stakes: Stakes = Stakes.LOW
    discomfort_level: DiscomfortLevel = DiscomfortLevel.NONE

    def to_dict(self) -> dict[str, str]:
        return {
            "task_type": self.task_type.value,
            "friction_level": self.friction_level.value,
            "stakes": self.stakes.value,
            "discomfort_level": self.discomfort_level.value,
        }


@dataclass(frozen=True)
class MicroEvent:
    """会话内的一次微事件"""
    kind: str                      # EventKind 的值，存量数据中可能出现未知类型
    timestamp: datetime
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind,
            "timestamp": self.timestamp.isoformat(),
            "description": self.description,
        }


@dataclass(frozen=True)
class SelfReport:
    """会话结束后的自我报告，缺省字段取中性值"""
    urge_level: UrgeLevel = UrgeLevel.NONE
    switch_unblocked: bool = False
    return_gap_days: int = 0
    planned_day_match: bool = False
    start_timing: StartTiming = StartTiming.ON_TIME
    prompted: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "urgeLevel": self.urge_level.value,
            "switchUnblocked": self.switch_unblocked,
            "returnGapDays": self.return_gap_days,
            "plannedDayMatch": self.planned_day_match,
            "startTiming": self.start_timing.value,
            "prompted": self.prompted,
        }


@dataclass(frozen=True)
class SessionSummary:
    """一次已完成的专注会话"""
    session_id: str
    duration_minutes: float = 0
    events: tuple[MicroEvent, ...] = ()
    self_report: SelfReport | None = None
    task_id: str | None = None
    user_id: str | None = None
    completed: bool = True

    def __post_init__(self):
        # 负数或非有限时长按 0 处理，超长会话截断到上限
        minutes = self.duration_minutes
        if not math.isfinite(minutes) or minutes < 0:
            object.__setattr__(self, "duration_minutes", 0)
        elif minutes > MAX_SESSION_MINUTES:
            object.__setattr__(self, "duration_minutes", MAX_SESSION_MINUTES)
        if not isinstance(self.events, tuple):
            object.__setattr__(self, "events", tuple(self.events))


@dataclass(frozen=True)
class TraitResult:
    """单个特质的评分结果"""
    trait: Trait
    base_xp: int
    final_xp: int
    narrative_seed: str = ""
    multiplier_breakdown: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "trait": self.trait.value,
            "base_xp": self.base_xp,
            "final_xp": self.final_xp,
            "narrative_seed": self.narrative_seed,
            "multipliers": self.multiplier_breakdown,
        }


@dataclass
class XpLedgerEntry:
    """经验账本行 (只追加)"""
    session_id: str
    trait: Trait
    base_xp: int
    final_xp: int
    multiplier_breakdown: dict[str, Any] = field(default_factory=dict)
    narrative_seed: str = ""
    created_at: datetime | None = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now()

    @classmethod
    def from_result(cls, session_id: str, result: TraitResult) -> "XpLedgerEntry":
        return cls(
            session_id=session_id,
            trait=result.trait,
            base_xp=result.base_xp,
            final_xp=result.final_xp,
            multiplier_breakdown=result.multiplier_breakdown,
            narrative_seed=result.narrative_seed,
        )


@dataclass
class MintEvent:
    """代币铸造记录"""
    user_id: str
    amount: int
    meta: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None
    id: int | None = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "meta": self.meta,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class ScoringResult:
    """一次评分运行的结果，交给叙事生成器和 UI"""
    per_trait_results: list[TraitResult] = field(default_factory=list)
    total_xp: int = 0
    tokens: int = 0
    per_trait_totals: dict[str, int] = field(default_factory=dict)
    session_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "per_trait_results": [r.to_dict() for r in self.per_trait_results],
            "total_xp": self.total_xp,
            "tokens": self.tokens,
            "per_trait_totals": self.per_trait_totals,
            "session_ids": self.session_ids,
        }
