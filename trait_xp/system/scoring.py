"""
特质经验计算
纯函数: 任务分类 -> 倍率，微事件 -> 计数，会话摘要 -> 各特质经验

努力类特质 (自律、适应力、毅力、决心、勇气) 乘以难度倍率；
行为事实类特质 (主动启动、积极性、韧性、耐力) 不受难度影响。
"""

import math
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from ..core.traits import SCALED_TRAITS, Trait
from ..storage.models import (
    DiscomfortLevel,
    EventKind,
    FrictionLevel,
    MicroEvent,
    SessionSummary,
    StartTiming,
    Stakes,
    TaskClassification,
    TraitResult,
    UrgeLevel,
)


MINUTES_PER_BASE_XP = 5
LONG_RUN_MINUTES = 25          # 跨过一个专注块的阈值

FRICTION_MULTIPLIERS = {
    FrictionLevel.HIGH: 1.5,
    FrictionLevel.MEDIUM: 1.2,
    FrictionLevel.LOW: 1.0,
}

STAKES_MULTIPLIERS = {
    Stakes.HIGH: 1.2,
    Stakes.MEDIUM: 1.1,
    Stakes.LOW: 1.0,
}

DISCOMFORT_MULTIPLIERS = {
    DiscomfortLevel.HIGH: 1.3,
    DiscomfortLevel.MODERATE: 1.2,
    DiscomfortLevel.MILD: 1.1,
    DiscomfortLevel.NONE: 1.0,
}

DETERMINATION_BASE = {
    UrgeLevel.HIGH: 16,
    UrgeLevel.MEDIUM: 8,
    UrgeLevel.NONE: 0,
}

INITIATIVE_XP = {
    StartTiming.EARLY: 20,
    StartTiming.ON_TIME: 12,
    StartTiming.DELAYED: 6,
}

# 回归间隔 (天) -> 韧性经验，从大到小匹配
RESILIENCE_TIERS = [(7, 25), (3, 20), (1, 15)]

COURAGE_BASE = 12
COURAGE_DISCOMFORT_ADD = {DiscomfortLevel.HIGH: 12, DiscomfortLevel.MODERATE: 6}
COURAGE_STAKES_ADD = {Stakes.HIGH: 12, Stakes.MEDIUM: 6, Stakes.LOW: 3}
COURAGE_FRICTION_BONUS = {FrictionLevel.HIGH: 6}

ENDURANCE_CAP = 20


def round_half_up(value: float) -> int:
    """四舍五入到整数 (.5 进位，不使用银行家舍入)"""
    return math.floor(value + 0.5)


def get_multiplier(classification: TaskClassification) -> float:
    """任务分类 -> 难度倍率，保留两位小数"""
    product = (
        FRICTION_MULTIPLIERS[classification.friction_level]
        * STAKES_MULTIPLIERS[classification.stakes]
        * DISCOMFORT_MULTIPLIERS[classification.discomfort_level]
    )
    return float(Decimal(repr(product)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def count_events(events: Iterable[MicroEvent]) -> Counter:
    """统计各类微事件次数，未出现的类型计为 0"""
    return Counter(e.kind for e in events)


def base_xp_for(duration_minutes: float) -> int:
    """每 5 分钟专注 1 点基础经验"""
    return math.floor(max(0, duration_minutes) / MINUTES_PER_BASE_XP)


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def compute_trait_xp(
    session: SessionSummary,
    classification: TaskClassification,
    multiplier: float | None = None,
) -> list[TraitResult]:
    """计算一次会话的各特质经验，经验为 0 的特质会被剔除"""
    if multiplier is None:
        multiplier = get_multiplier(classification)

    minutes = max(0, session.duration_minutes)
    base_xp = base_xp_for(minutes)
    counts = count_events(session.events)
    report = session.self_report

    urge = counts[EventKind.URGE_OVERCOME.value]
    approach = counts[EventKind.APPROACH_CHANGE.value]
    distractions = counts[EventKind.DISTRACTION.value]

    # 自律: 克服冲动加分，分心轻度扣分
    discipline_base = base_xp
    discipline_final = max(0, round_half_up(
        discipline_base * multiplier + urge * 3 - min(discipline_base, distractions)
    ))

    # 适应力: 倍率只作用于基础项，自报解锁加成另计
    adaptability_base = round_half_up(base_xp * 0.6)
    adaptability_final = max(0, round_half_up(adaptability_base * multiplier + approach * 4))
    if report and report.switch_unblocked:
        adaptability_final += 6

    # 毅力: 跨过专注块有小额奖励
    perseverance_base = round_half_up(base_xp * 0.8)
    long_run_bonus = 5 if minutes >= LONG_RUN_MINUTES else 0
    perseverance_final = max(0, round_half_up(perseverance_base * multiplier + long_run_bonus))

    # 耐力: 坐得住的时间，封顶 20
    endurance_base = math.floor(minutes / 10) * 5
    endurance_final = min(ENDURANCE_CAP, endurance_base)

    # 决心: 来自自报冲动强度
    urge_level = report.urge_level if report else UrgeLevel.NONE
    determination_base = DETERMINATION_BASE[urge_level]
    determination_final = (
        round_half_up(determination_base * multiplier) if determination_base > 0 else 0
    )

    # 韧性: 间隔多日后回归
    gap_days = report.return_gap_days if report else 0
    resilience_final = next(
        (xp for threshold, xp in RESILIENCE_TIERS if gap_days >= threshold), 0
    )

    initiative_final = INITIATIVE_XP[report.start_timing if report else StartTiming.ON_TIME]
    proactiveness_final = 2 if report and report.prompted else 6

    # 勇气: 完全来自任务分类
    courage_raw = (
        COURAGE_BASE
        + COURAGE_DISCOMFORT_ADD.get(classification.discomfort_level, 0)
        + COURAGE_STAKES_ADD.get(classification.stakes, 0)
        + COURAGE_FRICTION_BONUS.get(classification.friction_level, 0)
    )
    courage_final = max(0, round_half_up(courage_raw * multiplier))

    breakdown = {
        "multiplier": multiplier,
        "friction_level": classification.friction_level.value,
        "stakes": classification.stakes.value,
        "discomfort_level": classification.discomfort_level.value,
        "events": {
            EventKind.URGE_OVERCOME.value: urge,
            EventKind.APPROACH_CHANGE.value: approach,
            EventKind.DISTRACTION.value: distractions,
        },
    }

    rows = {
        Trait.INITIATIVE: (0, initiative_final, ""),
        Trait.COURAGE: (COURAGE_BASE, courage_final, ""),
        Trait.DISCIPLINE: (
            discipline_base,
            discipline_final,
            f"Pushed through {urge} {_plural(urge, 'urge')} and stayed on task.",
        ),
        Trait.ADAPTABILITY: (
            adaptability_base,
            adaptability_final,
            f"Adapted approach {approach} {_plural(approach, 'time')}."
            if approach > 0 else "Stayed flexible.",
        ),
        Trait.ENDURANCE: (endurance_base, endurance_final, ""),
        Trait.PROACTIVENESS: (0, proactiveness_final, ""),
        Trait.DETERMINATION: (determination_base, determination_final, ""),
        Trait.RESILIENCE: (0, resilience_final, ""),
        Trait.PERSEVERANCE: (
            perseverance_base,
            perseverance_final,
            "Crossed a focus block." if minutes >= LONG_RUN_MINUTES else "Chipped away steadily.",
        ),
    }

    results = []
    for trait in Trait:
        base, final, seed = rows[trait]
        if final <= 0:
            continue
        results.append(TraitResult(
            trait=trait,
            base_xp=base,
            final_xp=final,
            narrative_seed=seed,
            multiplier_breakdown={**breakdown, "scaled": trait in SCALED_TRAITS},
        ))
    return results


def total_xp(results: Iterable[TraitResult]) -> int:
    return sum(r.final_xp for r in results)
