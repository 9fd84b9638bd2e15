"""
STDL 语义验证器

核心职责：
1. 分配限定名并检测重复状态
2. 检查 Initial 伪状态（无子状态、目标不是直接子状态）
3. 解析所有转换目标，报告无法解析的目标
4. 检查入口 Initial 链是否超过跳数上限
5. 标记终态与“本层隐式终态”的复合状态

设计原则：
- 一次遍历收集，遍历后统一解析，尽可能一次性报告所有问题
- 只产出诊断，不修改语法树
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .diagnostics import SOURCE_SEMANTIC, Diagnostic, DiagnosticSeverity, clamp_range
from .naming import DEFAULT_MAX_INITIAL_HOPS, StateIndex, build_index, resolve_target
from .nodes import StateMachineModel, StateNode
from .tokens import Range

logger = logging.getLogger(__name__)


@dataclass
class CollectedTransition:
    """遍历中收集的一条待解析转换"""
    source: StateNode
    source_qualified_name: str
    target_name: str
    range: Range


class SemanticValidator:
    """
    语义验证器

    Args:
        states: 解析得到的状态森林
        lines: 文档各行文本，用于钳制诊断范围
        max_initial_hops: Initial 链的最大跳数
    """

    def __init__(
        self,
        states: StateMachineModel,
        lines: Sequence[str],
        max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS,
    ):
        self.states = states
        self.lines = lines
        self.max_initial_hops = max_initial_hops
        self.diagnostics: List[Diagnostic] = []
        self.transitions: List[CollectedTransition] = []
        self.index: Optional[StateIndex] = None

    def validate(self) -> List[Diagnostic]:
        """执行完整语义验证"""
        self.index = build_index(self.states)

        for qualified_name, node in self.index.duplicates:
            self._add(f'Duplicate state definition: "{qualified_name}"', node.range)

        for qualified_name, node in self._walk_all():
            self._collect_transitions(node, qualified_name)
            self._check_initial(node, qualified_name)

        self._check_transition_targets()
        self._check_initial_chain()
        self._classify_terminal_states()

        logger.debug(
            "Semantic validation finished: %s states, %s transitions, %s diagnostics",
            len(self.index.states),
            len(self.transitions),
            len(self.diagnostics),
        )
        return self.diagnostics

    def _walk_all(self):
        """按文档顺序遍历所有节点（包括重复定义的节点）"""
        def visit(nodes: StateMachineModel):
            for node in nodes:
                yield self.index.qualified_name_of(node), node
                yield from visit(node.sub_states)
        return visit(self.states)

    def _collect_transitions(self, node: StateNode, qualified_name: str) -> None:
        for handler in node.event_handlers:
            if handler.transition is None:
                continue
            self.transitions.append(CollectedTransition(
                source=node,
                source_qualified_name=qualified_name,
                target_name=handler.transition.target_state_name,
                range=handler.transition.range,
            ))

    def _check_initial(self, node: StateNode, qualified_name: str) -> None:
        if node.initial_sub_state_name is None:
            return

        error_range = node.initial_transition_range or node.range
        if not node.sub_states:
            self._add(
                f"State \"{qualified_name}\" defines an 'Initial' pseudo-state but has no substates.",
                error_range,
            )
        elif not node.has_sub_state(node.initial_sub_state_name):
            self._add(
                f'Initial transition target "{node.initial_sub_state_name}" '
                f'is not a direct substate of "{qualified_name}".',
                error_range,
            )

    def _check_transition_targets(self) -> None:
        for transition in self.transitions:
            resolved = resolve_target(self.index, transition.source, transition.target_name)
            if resolved is not None and resolved in self.index:
                continue
            self._add(
                f'Transition target state "{transition.target_name}" cannot be resolved from state '
                f'"{transition.source_qualified_name}". Looked for '
                f"{transition.source_qualified_name}.{transition.target_name}, siblings, and top-level states.",
                transition.range,
            )

    def _check_initial_chain(self) -> None:
        """模型从第一个顶层状态沿 Initial 链进入，链长超过上限时无法构建"""
        if not self.states:
            return

        start = self.states[0]
        node = start
        hops = 0
        while node.initial_sub_state_name is not None:
            child = node.find_sub_state(node.initial_sub_state_name)
            if child is None:
                return
            if hops >= self.max_initial_hops:
                self._add(
                    f'Initial transition chain from "{start.name}" exceeds {self.max_initial_hops} hops.',
                    node.initial_transition_range or node.range,
                )
                return
            node = child
            hops += 1

    def _classify_terminal_states(self) -> None:
        sources = {t.source_qualified_name for t in self.transitions}
        for qualified_name, node in self.index.items():
            has_outgoing = qualified_name in sources
            if not node.is_composite and not has_outgoing:
                self._add(
                    f'State "{qualified_name}" is terminal (no outgoing transitions).',
                    node.range,
                    DiagnosticSeverity.HINT,
                )
            elif node.is_composite and node.initial_sub_state_name is None and not has_outgoing:
                self._add(
                    f"Composite state \"{qualified_name}\" has no 'Initial' pseudo-state and no direct "
                    f"outgoing transitions, making it terminal at this level.",
                    node.range,
                    DiagnosticSeverity.INFORMATION,
                )

    def _add(
        self,
        message: str,
        range_: Range,
        severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
    ) -> None:
        clamped = clamp_range(range_, self.lines)
        if clamped is None:
            return
        self.diagnostics.append(Diagnostic(message=message, range=clamped, severity=severity, source=SOURCE_SEMANTIC))


def validate(
    states: StateMachineModel,
    lines: Sequence[str],
    max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS,
) -> List[Diagnostic]:
    """对状态森林执行语义验证"""
    return SemanticValidator(states, lines, max_initial_hops).validate()
