"""
会话遥测解析
把存储层或 API 传入的原始 JSON 转换成 SessionSummary
"""

from datetime import datetime
from typing import Any

from ..storage.models import (
    MicroEvent,
    SelfReport,
    SessionSummary,
    StartTiming,
    UrgeLevel,
)
from .classification import coerce_enum


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    # 时间戳只用于展示，解析失败不影响评分
    return datetime.fromtimestamp(0)


def parse_events(raw: list[dict[str, Any]] | None) -> tuple[MicroEvent, ...]:
    """解析微事件列表，保留原始顺序"""
    events = []
    for item in raw or []:
        kind = item.get("type") or item.get("kind")
        if not kind:
            continue
        events.append(MicroEvent(
            kind=str(kind),
            timestamp=_parse_timestamp(item.get("timestamp")),
            description=item.get("description"),
        ))
    return tuple(events)


def parse_self_report(raw: dict[str, Any] | None) -> SelfReport | None:
    """解析自我报告，空报告视为没有报告"""
    if not raw:
        return None

    def pick(camel: str, snake: str, default: Any = None) -> Any:
        if camel in raw:
            return raw[camel]
        return raw.get(snake, default)

    try:
        gap_days = int(pick("returnGapDays", "return_gap_days", 0) or 0)
    except (TypeError, ValueError):
        gap_days = 0

    return SelfReport(
        urge_level=coerce_enum(UrgeLevel, pick("urgeLevel", "urge_level"), UrgeLevel.NONE),
        switch_unblocked=bool(pick("switchUnblocked", "switch_unblocked", False)),
        return_gap_days=max(0, gap_days),
        planned_day_match=bool(pick("plannedDayMatch", "planned_day_match", False)),
        start_timing=coerce_enum(
            StartTiming, pick("startTiming", "start_timing"), StartTiming.ON_TIME
        ),
        prompted=bool(pick("prompted", "prompted", False)),
    )


def session_from_dict(data: dict[str, Any]) -> SessionSummary:
    """从 API 负载构造会话摘要"""
    duration = data.get("duration_minutes", data.get("durationMinutes", 0)) or 0
    return SessionSummary(
        session_id=str(data["session_id"]),
        duration_minutes=duration,
        events=parse_events(data.get("events")),
        self_report=parse_self_report(data.get("self_report") or data.get("selfReport")),
        task_id=data.get("task_id"),
        user_id=data.get("user_id"),
        completed=bool(data.get("completed", True)),
    )
