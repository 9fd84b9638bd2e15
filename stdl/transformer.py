"""
模型转换器

将嵌套的状态树展开为以限定名为键的转换表，供执行引擎、调试器与图表渲染使用。

规则：
- 同时带转换与动作的处理器：一条转换，动作以逗号拼接
- 只有动作的处理器：指向自身的转换（内部动作统一表示为自转换）
- 两者都没有：不产生条目
- 声明了 Initial 且目标是直接子状态：在保留事件下生成一条自动转换

输入即使未通过验证也不会导致崩溃；无法得到有效模型时返回 None。
"""
import logging
from typing import List, Optional

from fsm.states import INITIAL_TRANSITION_EVENT, FlatTransition, FlattenedState, FlattenedStateMachine

from .naming import DEFAULT_MAX_INITIAL_HOPS, StateIndex, build_index, qualify, resolve_target
from .nodes import StateMachineModel, StateNode

logger = logging.getLogger(__name__)


def _flatten_state(index: StateIndex, node: StateNode, qualified_name: str) -> FlattenedState:
    state = FlattenedState(
        name=qualified_name,
        on_entry=[action.name for action in node.on_entry_actions],
        on_exit=[action.name for action in node.on_exit_actions],
        range=node.range,
    )

    for handler in node.event_handlers:
        actions = handler.action_names
        joined = ", ".join(actions) if actions else None
        guard = handler.guard or ""

        if handler.transition is not None:
            written = handler.transition.target_state_name
            target = resolve_target(index, node, written)
            if target is None:
                logger.warning(
                    "Unresolved transition target %r from %s, keeping literal name",
                    written,
                    qualified_name,
                )
                target = written
            state.add_transition(handler.event, FlatTransition(
                target=target, guard=guard, action=joined, actions=actions, range=handler.range,
            ))
        elif actions:
            state.add_transition(handler.event, FlatTransition(
                target=qualified_name, guard=guard, action=joined, actions=actions, range=handler.range,
            ))

    initial_name = node.initial_sub_state_name
    if initial_name and node.has_sub_state(initial_name):
        target = qualify(qualified_name, initial_name)
        state.add_transition(INITIAL_TRANSITION_EVENT, FlatTransition(
            target=target, range=node.initial_transition_range,
        ))
        logger.debug("Added automatic initial transition from %s to %s", qualified_name, target)

    return state


def _follow_initial_chain(
    machine: FlattenedStateMachine,
    start: str,
    max_hops: int,
) -> Optional[List[str]]:
    """
    从 start 出发沿 Initial 自动转换前进

    Returns:
        经过的限定名序列；超过跳数上限或出现环时返回 None
    """
    path = [start]
    current = start
    while True:
        state = machine.get(current)
        if state is None:
            return path
        initial = state.initial_transition
        if initial is None:
            return path
        if len(path) - 1 >= max_hops or initial.target in path:
            logger.error(
                "Initial transition chain from %s exceeds %s hops or loops back on itself",
                start,
                max_hops,
            )
            return None
        current = initial.target
        path.append(current)
        logger.debug("Following initial transition chain to: %s", current)


def transform_model(
    states: StateMachineModel,
    max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS,
) -> Optional[FlattenedStateMachine]:
    """
    展开状态树

    Args:
        states: 解析得到的状态森林
        max_initial_hops: Initial 链的最大跳数

    Returns:
        扁平化状态机；模型为空或 Initial 链异常时返回 None
    """
    if not states:
        return None

    index = build_index(states)
    machine = FlattenedStateMachine(initial_state="")
    for qualified_name, node in index.items():
        machine.states[qualified_name] = _flatten_state(index, node, qualified_name)

    if not machine.states:
        logger.warning("No states found after processing")
        return None

    path = _follow_initial_chain(machine, states[0].name, max_initial_hops)
    if path is None:
        return None

    machine.initial_state = path[-1]
    machine.initial_path = path
    if machine.initial_state not in machine:
        fallback = next(iter(machine.states))
        logger.warning(
            "Initial state %r not found, falling back to first available state %r",
            machine.initial_state,
            fallback,
        )
        machine.initial_state = fallback
        machine.initial_path = [fallback]

    for state_name, state in machine.states.items():
        for event, entries in state.transitions.items():
            for entry in entries:
                logger.debug(
                    "Transition: %s -- %s%s --> %s%s",
                    state_name,
                    event,
                    f" [{entry.guard}]" if entry.guard else "",
                    entry.target,
                    f" (Actions: {entry.action})" if entry.action else "",
                )

    return machine
