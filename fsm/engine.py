"""
FSM 引擎

核心职责：
1. 在扁平化状态机上执行单步事件（step）
2. 计算转换效果：动作 -> OnExit -> 状态变更 -> OnEntry -> Initial 链
3. 处理歧义匹配（返回候选，由调用方选择后 resolve_choice）
4. 提供只读的动作查询接口

设计原则：
- 引擎本身无状态，当前状态由调用方（调试会话）持有
- 不抛出异常，所有结果都以四种执行结果之一返回
- 守卫文本只做精确字符串比较，从不求值
"""
import logging
from typing import List, Optional, Set, Tuple

from stdl.naming import ancestor_chain, common_ancestor, find_node_by_qualified_name
from stdl.nodes import StateMachineModel

from .states import (
    INITIAL_TRANSITION_EVENT,
    Choice,
    ChoiceRequired,
    Effect,
    EffectKind,
    FlatTransition,
    FlattenedStateMachine,
    StepError,
    StepOutcome,
    StepWarning,
    TransitionTaken,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_INITIAL_HOPS = 20


class FSMEngine:
    """
    FSM 引擎

    Args:
        machine: 扁平化状态机
        max_initial_hops: 执行期 Initial 链的最大跳数
    """

    def __init__(self, machine: FlattenedStateMachine, max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS):
        self.machine = machine
        self.max_initial_hops = max_initial_hops

    def step(self, current_state: str, event: str, guard: Optional[str] = None) -> StepOutcome:
        """
        执行一个事件

        Args:
            current_state: 当前状态限定名
            event: 事件名
            guard: 守卫文本，None 与 "" 等价

        Returns:
            TransitionTaken / ChoiceRequired / StepError / StepWarning 之一
        """
        state = self.machine.get(current_state)
        if state is None:
            logger.error("Current state %r not found in state machine", current_state)
            return StepError(f'Current state "{current_state}" not found in state machine.')

        candidates = state.transitions.get(event) if event != INITIAL_TRANSITION_EVENT else None
        if not candidates:
            return StepWarning(f'No transition defined for event "{event}" in state "{current_state}".')

        requested = guard or ""
        matching = [t for t in candidates if t.guard == requested]
        if not matching:
            guard_text = f"[{requested}]" if requested else "(no guard)"
            return StepWarning(
                f'No transition defined for event "{event}" with guard {guard_text} in state "{current_state}".'
            )

        if len(matching) > 1:
            logger.debug("Event %s in %s matches %s transitions", event, current_state, len(matching))
            return ChoiceRequired(choices=[
                Choice(event=event, guard=t.guard, target=t.target, range=t.range) for t in matching
            ])

        return self.apply_transition(current_state, matching[0])

    def resolve_choice(self, current_state: str, event: str, guard: Optional[str], target: str) -> StepOutcome:
        """应用调用方在歧义候选中选定的那条转换"""
        state = self.machine.get(current_state)
        if state is None:
            return StepError(f'Current state "{current_state}" not found in state machine.')

        requested = guard or ""
        for transition in state.transitions.get(event, []):
            if transition.guard == requested and transition.target == target:
                return self.apply_transition(current_state, transition)

        return StepError(
            f'"{target}" is not a candidate target for event "{event}" in state "{current_state}".'
        )

    def apply_transition(self, current_state: str, transition: FlatTransition) -> StepOutcome:
        """按顺序计算一条已选定转换的全部效果"""
        target = transition.target
        if target not in self.machine:
            logger.error("Transition target %r from %s could not be resolved", target, current_state)
            return StepError(f'Transition target state "{target}" could not be resolved.')

        effects: List[Effect] = [
            Effect(EffectKind.ACTION, current_state, name) for name in transition.actions
        ]

        if target == current_state:
            # 自转换与内部动作：不退出也不重新进入
            logger.debug("Internal transition in %s", current_state)
            return TransitionTaken(
                new_state=current_state,
                effects=effects,
                target_range=self._state_range(current_state),
            )

        shared = common_ancestor(current_state, target)
        depth = len(ancestor_chain(shared)) if shared else 0

        for name in reversed(ancestor_chain(current_state)[depth:]):
            effects.extend(self._exit_effects(name))

        effects.append(Effect(EffectKind.TRANSITION, target))

        entered = ancestor_chain(target)[depth:]
        for name in entered:
            effects.extend(self._entry_effects(name))

        final_state, chain_effects = self._follow_initial(target, set(entered))
        effects.extend(chain_effects)

        logger.debug("Transition %s -> %s (final state %s)", current_state, target, final_state)
        return TransitionTaken(
            new_state=final_state,
            effects=effects,
            target_range=self._state_range(final_state),
        )

    def enter_initial(self) -> TransitionTaken:
        """会话启动：沿初始路径由外到内进入各状态"""
        effects: List[Effect] = []
        for position, name in enumerate(self.machine.initial_path):
            if position > 0:
                effects.append(Effect(EffectKind.INITIAL, name))
            effects.extend(self._entry_effects(name))

        return TransitionTaken(
            new_state=self.machine.initial_state,
            effects=effects,
            target_range=self._state_range(self.machine.initial_state),
        )

    def _follow_initial(self, start: str, entered: Set[str]) -> Tuple[str, List[Effect]]:
        current = start
        effects: List[Effect] = []
        for _ in range(self.max_initial_hops):
            state = self.machine.get(current)
            initial = state.initial_transition if state else None
            if initial is None:
                break
            if initial.target not in self.machine:
                logger.warning("Initial transition target %r of %s not found", initial.target, current)
                break
            current = initial.target
            effects.append(Effect(EffectKind.INITIAL, current))
            if current not in entered:
                entered.add(current)
                effects.extend(self._entry_effects(current))
        else:
            state = self.machine.get(current)
            if state is not None and state.initial_transition is not None:
                logger.warning("Initial transition chain from %s stopped after %s hops", start, self.max_initial_hops)
        return current, effects

    def _exit_effects(self, name: str) -> List[Effect]:
        state = self.machine.get(name)
        if state is None:
            return []
        return [Effect(EffectKind.EXIT, name, action) for action in state.on_exit]

    def _entry_effects(self, name: str) -> List[Effect]:
        state = self.machine.get(name)
        if state is None:
            return []
        return [Effect(EffectKind.ENTRY, name, action) for action in state.on_entry]

    def _state_range(self, name: str):
        state = self.machine.get(name)
        return state.range if state else None

    def __repr__(self) -> str:
        return f"FSMEngine(initial={self.machine.initial_state}, states={len(self.machine.states)})"


def step(
    machine: FlattenedStateMachine,
    current_state: str,
    event: str,
    guard: Optional[str] = None,
) -> StepOutcome:
    """在给定状态机上执行一个事件"""
    return FSMEngine(machine).step(current_state, event, guard)


def resolve_choice(
    machine: FlattenedStateMachine,
    current_state: str,
    event: str,
    guard: Optional[str],
    target: str,
) -> StepOutcome:
    return FSMEngine(machine).resolve_choice(current_state, event, guard, target)


def enter_initial(machine: FlattenedStateMachine) -> TransitionTaken:
    return FSMEngine(machine).enter_initial()


def get_action_info(
    states: StateMachineModel,
    state_name: str,
    event: str,
    guard: Optional[str] = None,
) -> Optional[List[List[str]]]:
    """
    查询某状态上匹配事件（与守卫）的处理器动作

    Args:
        states: 解析得到的状态森林
        state_name: 状态限定名
        event: 事件名
        guard: 守卫文本，None 与 "" 等价

    Returns:
        每个匹配处理器的动作列表（只包含至少有一个动作的处理器）；没有匹配时返回 None
    """
    node = find_node_by_qualified_name(states, state_name)
    if node is None:
        return None

    results = [
        handler.action_names
        for handler in node.event_handlers
        if handler.event == event
        and (handler.guard or "") == (guard or "")
        and handler.actions
    ]
    return results or None
