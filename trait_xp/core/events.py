"""
事件总线 - 引擎对外通知
评分结果通过事件总线推送给叙事生成器、UI 等订阅方，订阅方无法影响评分
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)


class EventType(Enum):
    # 评分事件
    SESSION_SCORED = "session_scored"
    XP_AWARDED = "xp_awarded"
    TOKENS_MINTED = "tokens_minted"
    SCORING_FAILED = "scoring_failed"

    # 通知事件 (叙事生成器消费)
    NOTIFICATION_PUSH = "notification_push"

    # 系统生命周期
    SYSTEM_START = "system_start"
    SYSTEM_STOP = "system_stop"


@dataclass
class Event:
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "system"


# 事件处理器类型
EventHandler = Callable[[Event], Coroutine[Any, Any, None]]


class EventBus:
    """异步事件总线"""

    def __init__(self, max_history: int = 1000):
        self._handlers: dict[EventType, list[EventHandler]] = defaultdict(list)
        self._history: list[Event] = []
        self._max_history = max_history

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """注册事件处理器"""
        self._handlers[event_type].append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """移除事件处理器"""
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    async def emit(self, event: Event) -> None:
        """触发事件，处理器抛出的异常只记录不传播"""
        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = self._handlers.get(event.type, [])
        if not handlers:
            return
        results = await asyncio.gather(
            *(handler(event) for handler in handlers),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning("[EventBus] %s 处理器出错: %s", event.type.value, result)

    async def emit_simple(self, event_type: EventType, **data) -> None:
        """简便触发事件"""
        await self.emit(Event(type=event_type, data=data))

    def get_history(
        self,
        event_type: EventType | None = None,
        limit: int = 50,
    ) -> list[Event]:
        """获取事件历史"""
        if event_type:
            filtered = [e for e in self._history if e.type == event_type]
        else:
            filtered = self._history
        return filtered[-limit:]


# 全局事件总线实例
bus = EventBus()
