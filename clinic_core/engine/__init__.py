"""
clinic_core/engine - 核心引擎模块

- event_bus: 事件总线（发布/订阅）
- state_machine: 状态机（状态转换校验）
"""
from clinic_core.engine.event_bus import (
    Event,
    Handler,
    PublishResult,
    EventBus,
)
from clinic_core.engine.state_machine import (
    StateTransition,
    StateMachineConfig,
    StateMachine,
    InvalidTransitionError,
)

__all__ = [
    "Event",
    "Handler",
    "PublishResult",
    "EventBus",
    "StateTransition",
    "StateMachineConfig",
    "StateMachine",
    "InvalidTransitionError",
]
