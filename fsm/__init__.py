"""
FSM 执行模块

在扁平化状态机上执行事件，并为交互式调试提供会话与日志。

核心设计：
- 引擎无状态，输入相同则结果相同
- 执行结果是四选一的标签联合，调用方按类型分支
- 会话只保存当前状态与日志，模型每次由调用方重新构建

使用示例:
    from fsm import FSMEngine, DebugSession

    engine = FSMEngine(machine)
    outcome = engine.step("Idle", "start")

    session = DebugSession(document_id="door.stdl")
    session.start(machine)
    session.execute(machine, "open", "locked == false")
"""

from .states import (
    INITIAL_TRANSITION_EVENT,
    Choice,
    ChoiceRequired,
    Effect,
    EffectKind,
    FlatTransition,
    FlattenedState,
    FlattenedStateMachine,
    StepError,
    StepOutcome,
    StepWarning,
    TransitionTaken,
)

from .engine import (
    FSMEngine,
    enter_initial,
    get_action_info,
    resolve_choice,
    step,
)

from .session import DebugSession, LogEntry, LogType

__all__ = [
    # 核心类
    "FSMEngine",
    "DebugSession",
    # 函数
    "step",
    "resolve_choice",
    "enter_initial",
    "get_action_info",
    # 数据类
    "FlatTransition",
    "FlattenedState",
    "FlattenedStateMachine",
    "Effect",
    "EffectKind",
    "Choice",
    "TransitionTaken",
    "ChoiceRequired",
    "StepError",
    "StepWarning",
    "StepOutcome",
    "LogEntry",
    "LogType",
    # 常量
    "INITIAL_TRANSITION_EVENT",
]
