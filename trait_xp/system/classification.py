"""
任务分类查询
缺失或无法识别的字段一律回落到影响最小的取值，从不报错
"""

from enum import Enum
from typing import Any, TypeVar

from ..storage.models import (
    DiscomfortLevel,
    FrictionLevel,
    Stakes,
    TaskClassification,
    TaskType,
)

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: type[E], value: Any, default: E) -> E:
    """把原始值转换成枚举，失败时返回默认值"""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return default
    return default


def resolve_classification(meta: dict[str, Any] | None) -> TaskClassification:
    """根据 task_metadata 解析任务分类"""
    meta = meta or {}
    return TaskClassification(
        task_type=coerce_enum(TaskType, meta.get("task_type"), TaskType.SCHEDULED),
        friction_level=coerce_enum(FrictionLevel, meta.get("friction_level"), FrictionLevel.LOW),
        stakes=coerce_enum(Stakes, meta.get("stakes"), Stakes.LOW),
        discomfort_level=coerce_enum(
            DiscomfortLevel, meta.get("discomfort_level"), DiscomfortLevel.NONE
        ),
    )
