"""
clinic_core/engine/event_bus.py

进程内事件总线
服务在事务提交后发布领域事件（预订确认、注册等），通知处理器订阅后发送邮件。
总线由应用实例持有并通过依赖注入传递，测试中每个用例使用独立实例。
"""
from typing import Callable, Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
from collections import deque
import logging
import threading
import uuid

logger = logging.getLogger(__name__)


@dataclass
class Event:
    """
    领域事件

    Attributes:
        event_type: 事件类型（如 "booking.confirmed"）
        timestamp: 发生时间
        data: 事件载荷（可序列化的字典）
        source: 发布方服务名
    """

    event_type: str
    timestamp: datetime
    data: Dict[str, Any]
    source: str = ""
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)


Handler = Callable[[Event], None]


@dataclass
class PublishResult:
    """一次发布的处理统计"""

    event_type: str
    subscriber_count: int
    success_count: int = 0
    failure_count: int = 0
    failed_handlers: List[str] = field(default_factory=list)


class EventBus:
    """
    事件总线

    处理器在发布方线程内同步执行；单个处理器抛出的异常只记录日志，
    不影响其他处理器，也不会传回发布方（此时业务事务已提交）。
    """

    def __init__(self, history_size: int = 100):
        self._handlers: Dict[str, List[Handler]] = {}
        self._history: deque = deque(maxlen=history_size)
        self._lock = threading.RLock()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.setdefault(event_type, [])
            if handler in handlers:
                return
            handlers.append(handler)
        logger.debug(f"{_handler_name(handler)} subscribed to {event_type}")

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

    def publish(self, event: Event) -> PublishResult:
        """发布事件，返回处理统计"""
        with self._lock:
            self._history.append(event)
            handlers = list(self._handlers.get(event.event_type, ()))

        result = PublishResult(event_type=event.event_type, subscriber_count=len(handlers))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                result.failure_count += 1
                result.failed_handlers.append(_handler_name(handler))
                logger.error(
                    f"{_handler_name(handler)} failed on {event.event_type}: {e}",
                    exc_info=True,
                )
            else:
                result.success_count += 1

        if handlers:
            logger.info(
                f"Published {event.event_type} from {event.source or '-'}: "
                f"{result.success_count}/{result.subscriber_count} handlers ok"
            )
        return result

    def get_history(self, event_type: Optional[str] = None, limit: int = 50) -> List[Event]:
        """最近发布的事件，最新的在前"""
        with self._lock:
            history = [e for e in reversed(self._history)
                       if event_type is None or e.event_type == event_type]
        return history[:limit]


def _handler_name(handler: Callable) -> str:
    return getattr(handler, "__qualname__", None) or handler.__class__.__name__
