"""
FSM 状态定义

定义扁平化状态机（执行与外部渲染的边界产物）、执行效果以及单步执行结果。
执行结果是四选一的标签联合：TransitionTaken / ChoiceRequired / StepError / StepWarning。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from stdl.tokens import Range

# 自动 Initial 转换使用的保留事件名，用户无法书写（事件名只能由单词字符组成）
INITIAL_TRANSITION_EVENT = "__initialTransition"


@dataclass
class FlatTransition:
    """转换表中的一条转换"""
    target: str
    guard: str = ""
    action: Optional[str] = None  # 逗号拼接的动作文本
    actions: List[str] = field(default_factory=list)
    range: Optional[Range] = None  # 来源事件处理器的范围

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"target": self.target, "guard": self.guard}
        if self.action is not None:
            data["action"] = self.action
        if self.range is not None:
            data["range"] = self.range.to_dict()
        return data


@dataclass
class FlattenedState:
    """扁平化后的单个状态"""
    name: str
    on_entry: List[str] = field(default_factory=list)
    on_exit: List[str] = field(default_factory=list)
    transitions: Dict[str, List[FlatTransition]] = field(default_factory=dict)
    range: Optional[Range] = None  # 状态声明的范围

    @property
    def initial_transition(self) -> Optional[FlatTransition]:
        entries = self.transitions.get(INITIAL_TRANSITION_EVENT)
        return entries[0] if entries else None

    @property
    def events(self) -> List[str]:
        """用户可触发的事件名"""
        return [event for event in self.transitions if event != INITIAL_TRANSITION_EVENT]

    def add_transition(self, event: str, transition: FlatTransition) -> None:
        self.transitions.setdefault(event, []).append(transition)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "onEntry": list(self.on_entry),
            "onExit": list(self.on_exit),
            "transitions": {
                event: [t.to_dict() for t in entries]
                for event, entries in self.transitions.items()
            },
        }


@dataclass
class FlattenedStateMachine:
    """以限定名为键的扁平化状态机"""
    initial_state: str
    states: Dict[str, FlattenedState] = field(default_factory=dict)
    initial_path: List[str] = field(default_factory=list)

    def get(self, qualified_name: str) -> Optional[FlattenedState]:
        return self.states.get(qualified_name)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self.states

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initialState": self.initial_state,
            "initialPath": list(self.initial_path),
            "states": {name: state.to_dict() for name, state in self.states.items()},
        }


class EffectKind(str, Enum):
    """执行效果类型"""
    ACTION = "action"          # 事件处理器上的动作
    EXIT = "exit"              # OnExit 动作
    ENTRY = "entry"            # OnEntry 动作
    TRANSITION = "transition"  # 状态变更
    INITIAL = "initial"        # 自动 Initial 转换


@dataclass(frozen=True)
class Effect:
    """一次可见效果，按发生顺序记录"""
    kind: EffectKind
    state: str
    name: str = ""

    def describe(self) -> str:
        if self.kind == EffectKind.ACTION:
            return f"Action: {self.name}"
        if self.kind == EffectKind.EXIT:
            return f"OnExit action: {self.name}"
        if self.kind == EffectKind.ENTRY:
            return f"OnEntry action: {self.name}"
        if self.kind == EffectKind.INITIAL:
            return f"Initial transition to: {self.state}"
        return f"Transitioned to state: {self.state}"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "state": self.state, "name": self.name}


@dataclass(frozen=True)
class Choice:
    """歧义转换中的一个候选"""
    event: str
    guard: str
    target: str
    range: Optional[Range] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "guard": self.guard,
            "target": self.target,
            "range": self.range.to_dict() if self.range else None,
        }


@dataclass
class TransitionTaken:
    """唯一匹配，转换已完成"""
    kind: ClassVar[str] = "newState"
    new_state: str
    effects: List[Effect] = field(default_factory=list)
    target_range: Optional[Range] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "newState": self.new_state,
            "effects": [e.to_dict() for e in self.effects],
            "targetStateRange": self.target_range.to_dict() if self.target_range else None,
        }


@dataclass
class ChoiceRequired:
    """多个转换同时匹配，需要调用方选择"""
    kind: ClassVar[str] = "choices"
    choices: List[Choice] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "choices": [c.to_dict() for c in self.choices]}


@dataclass
class StepError:
    """致命错误（当前状态与模型不同步，或内部解析错误）"""
    kind: ClassVar[str] = "error"
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "error": self.message}


@dataclass
class StepWarning:
    """非致命：没有可用转换，会话保持原状态"""
    kind: ClassVar[str] = "warning"
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind, "warning": self.message}


StepOutcome = Union[TransitionTaken, ChoiceRequired, StepError, StepWarning]
