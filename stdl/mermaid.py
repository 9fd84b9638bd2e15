"""
Mermaid 状态图渲染

把语法树渲染为 Mermaid stateDiagram-v2 文本。复合状态使用嵌套块，
Initial 伪状态渲染为块内的 [*] 起点，转换目标按与验证器相同的规则解析。
纯渲染，不向模型回写任何信息。
"""
import re
from typing import List

from .naming import StateIndex, build_index, resolve_target
from .nodes import ActionNode, StateMachineModel, StateNode

INDENT = "    "
_WHITESPACE = re.compile(r"\s")


def state_alias(qualified_name: str) -> str:
    """限定名到 Mermaid 标识符"""
    return "st_" + _WHITESPACE.sub("_", qualified_name.replace(".", "_"))


def _clean_action(action: ActionNode) -> str:
    return action.name.split("//")[0].strip().replace('"', "'")


def _state_label(node: StateNode) -> str:
    if not node.on_entry_actions and not node.on_exit_actions:
        return node.name

    lines: List[str] = []
    if node.on_entry_actions:
        lines.append("OnEntry:")
        lines.extend(_clean_action(a) for a in node.on_entry_actions)
    if node.on_exit_actions:
        lines.append("OnExit:")
        lines.extend(_clean_action(a) for a in node.on_exit_actions)
    return f"{node.name}<hr><div style='text-align: left;'>{'<br>'.join(lines)}</div>"


class MermaidRenderer:
    """stateDiagram-v2 渲染器"""

    def __init__(self, states: StateMachineModel):
        self.states = states
        self.index: StateIndex = build_index(states)

    def render(self) -> str:
        out: List[str] = ["stateDiagram-v2", f"{INDENT}direction TB", ""]
        for node in self.states:
            self._render_state(node, INDENT, out)

        for node in self.states:
            self._collect_transitions(node, out)

        if self.states:
            out.append(f"{INDENT}[*] --> {state_alias(self.states[0].name)}")
        return "\n".join(out) + "\n"

    def _render_state(self, node: StateNode, indent: str, out: List[str]) -> None:
        qualified_name = self.index.qualified_name_of(node)
        alias = state_alias(qualified_name)
        label = _state_label(node)

        if not node.is_composite:
            out.append(f'{indent}state "{label}" as {alias}')
            out.append("")
            return

        out.append(f'{indent}state "{label}" as {alias} {{')
        if node.initial_sub_state_name and node.has_sub_state(node.initial_sub_state_name):
            initial_alias = state_alias(f"{qualified_name}.{node.initial_sub_state_name}")
            out.append(f"{indent}{INDENT}[*] --> {initial_alias} : Initial")
        for sub_state in node.sub_states:
            self._render_state(sub_state, indent + INDENT, out)
        out.append(f"{indent}}}")
        out.append("")

    def _collect_transitions(self, node: StateNode, out: List[str]) -> None:
        source_alias = state_alias(self.index.qualified_name_of(node))
        for handler in node.event_handlers:
            if handler.transition is None:
                continue
            written = handler.transition.target_state_name
            target = resolve_target(self.index, node, written) or written
            line = f"{INDENT}{source_alias} --> {state_alias(target)}: {handler.event}"
            if handler.guard:
                line += f" [{handler.guard}]"
            if handler.actions:
                line += " / " + ", ".join(_clean_action(a) for a in handler.actions)
            out.append(line)

        for sub_state in node.sub_states:
            self._collect_transitions(sub_state, out)


def render_mermaid(states: StateMachineModel) -> str:
    """渲染 Mermaid 状态图"""
    return MermaidRenderer(states).render()
