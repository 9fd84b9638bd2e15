"""
语法树节点定义

StateNode 独占其子状态、动作列表与事件处理器；
parent 仅作为查找用的反向引用，不参与所有权，也不参与比较与 repr。
"""
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .tokens import Range


@dataclass
class ActionNode:
    """动作引用（不透明文本）"""
    name: str
    range: Range


@dataclass
class TransitionNode:
    """转换引用，目标名保持书写形式（未限定）"""
    target_state_name: str
    range: Range


@dataclass
class EventHandlerNode:
    """事件处理器，没有 transition 时为内部处理器"""
    event: str
    range: Range
    guard: Optional[str] = None
    actions: List[ActionNode] = field(default_factory=list)
    transition: Optional[TransitionNode] = None

    @property
    def is_internal(self) -> bool:
        return self.transition is None

    @property
    def action_names(self) -> List[str]:
        return [action.name for action in self.actions]


@dataclass
class StateNode:
    """状态节点"""
    name: str
    range: Range
    full_range: Range
    indentation: int = 0
    on_entry_actions: List[ActionNode] = field(default_factory=list)
    on_exit_actions: List[ActionNode] = field(default_factory=list)
    event_handlers: List[EventHandlerNode] = field(default_factory=list)
    sub_states: List["StateNode"] = field(default_factory=list)
    initial_sub_state_name: Optional[str] = None
    initial_transition_range: Optional[Range] = None
    parent: Optional["StateNode"] = field(default=None, repr=False, compare=False)

    @property
    def is_composite(self) -> bool:
        return bool(self.sub_states)

    def find_sub_state(self, name: str) -> Optional["StateNode"]:
        """按名称查找直接子状态（同名时返回第一个）"""
        for sub_state in self.sub_states:
            if sub_state.name == name:
                return sub_state
        return None

    def has_sub_state(self, name: str) -> bool:
        return self.find_sub_state(name) is not None


StateMachineModel = List[StateNode]


def walk(states: StateMachineModel) -> Iterator[StateNode]:
    """深度优先、按文档顺序遍历所有状态"""
    for state in states:
        yield state
        yield from walk(state.sub_states)
