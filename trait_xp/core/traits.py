"""
特质体系
九项固定特质，不支持运行时扩展
"""

from enum import Enum


class Trait(str, Enum):
    INITIATIVE = "Initiative"          # 主动启动
    COURAGE = "Courage"                # 勇气
    DISCIPLINE = "Discipline"          # 自律
    ADAPTABILITY = "Adaptability"      # 适应力
    ENDURANCE = "Endurance"            # 耐力
    PROACTIVENESS = "Proactiveness"    # 积极性
    DETERMINATION = "Determination"    # 决心
    RESILIENCE = "Resilience"          # 韧性
    PERSEVERANCE = "Perseverance"      # 毅力


# 受难度倍率影响的特质 (努力类)
SCALED_TRAITS = frozenset({
    Trait.DISCIPLINE,
    Trait.ADAPTABILITY,
    Trait.PERSEVERANCE,
    Trait.DETERMINATION,
    Trait.COURAGE,
})

# 会生成叙事种子的特质
NARRATIVE_TRAITS = frozenset({
    Trait.DISCIPLINE,
    Trait.ADAPTABILITY,
    Trait.PERSEVERANCE,
})
