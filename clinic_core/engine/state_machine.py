"""
clinic_core/engine/state_machine.py

状态机 - 校验状态转换是否合法

只负责"能不能转"，持久化由调用方完成
"""
from typing import Dict, List, Optional
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """非法状态转换"""

    def __init__(self, machine: str, from_state: str, trigger: str):
        self.machine = machine
        self.from_state = from_state
        self.trigger = trigger
        super().__init__(f"{machine}: 状态 {from_state} 不允许执行 {trigger}")


@dataclass(frozen=True)
class StateTransition:
    """
    状态转换定义

    Attributes:
        from_state: 源状态
        to_state: 目标状态
        trigger: 触发动作
    """

    from_state: str
    to_state: str
    trigger: str


@dataclass
class StateMachineConfig:
    """
    状态机配置

    Attributes:
        name: 状态机名称
        states: 所有状态
        transitions: 转换列表
        terminal_states: 终态（不允许再转出）
    """

    name: str
    states: List[str]
    transitions: List[StateTransition]
    terminal_states: Optional[List[str]] = None


class StateMachine:
    """
    状态机

    Example:
        >>> machine = StateMachine(config)
        >>> machine.next_state("pending", "succeed")
        'confirmed'
    """

    def __init__(self, config: StateMachineConfig):
        self._config = config
        # (from_state, trigger) -> transition
        self._transition_map: Dict[str, Dict[str, StateTransition]] = {}
        for t in config.transitions:
            if t.from_state not in config.states or t.to_state not in config.states:
                raise ValueError(f"{config.name}: 未知状态 {t.from_state} -> {t.to_state}")
            self._transition_map.setdefault(t.from_state, {})[t.trigger] = t

    @property
    def name(self) -> str:
        return self._config.name

    def is_terminal(self, state: str) -> bool:
        """是否终态"""
        return state in (self._config.terminal_states or [])

    def can_fire(self, state: str, trigger: str) -> bool:
        """检查当前状态是否允许执行触发动作"""
        return trigger in self._transition_map.get(state, {})

    def next_state(self, state: str, trigger: str) -> str:
        """
        计算触发后的目标状态

        Raises:
            InvalidTransitionError: 当前状态不允许该触发动作
        """
        transition = self._transition_map.get(state, {}).get(trigger)
        if transition is None:
            logger.warning(f"Invalid transition: {self.name} {state} (trigger: {trigger})")
            raise InvalidTransitionError(self.name, state, trigger)
        return transition.to_state

    def allowed_triggers(self, state: str) -> List[str]:
        """当前状态允许的触发动作"""
        return sorted(self._transition_map.get(state, {}).keys())
