"""
限定名与目标解析

限定名是从顶层状态到当前状态的点分路径（如 Parent.Child）。
目标名 T 从源状态 S 出发按以下顺序解析，先命中者胜出：
1. S 的直接子状态 T        -> S.T
2. S 的父状态的直接子状态 T -> parent(S).T
3. 顶层限定名 T

索引是一次遍历的返回值，由调用方持有，不在请求之间共享。
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .nodes import StateMachineModel, StateNode

SEPARATOR = "."

# Initial 自动转换链的最大跳数
DEFAULT_MAX_INITIAL_HOPS = 20


def qualify(parent_qualified_name: Optional[str], name: str) -> str:
    return f"{parent_qualified_name}{SEPARATOR}{name}" if parent_qualified_name else name


def ancestor_chain(qualified_name: str) -> List[str]:
    """
    由限定名得到逐级加长的前缀序列

    例如 "A.B.C" -> ["A", "A.B", "A.B.C"]
    """
    parts = qualified_name.split(SEPARATOR)
    return [SEPARATOR.join(parts[:i + 1]) for i in range(len(parts))]


def common_ancestor(source: str, target: str) -> Optional[str]:
    """两个限定名的最长公共前缀（按层级），没有公共祖先时返回 None"""
    shared: Optional[str] = None
    for left, right in zip(ancestor_chain(source), ancestor_chain(target)):
        if left != right:
            break
        shared = left
    return shared


@dataclass
class StateIndex:
    """一次遍历得到的限定名索引"""
    states: Dict[str, StateNode] = field(default_factory=dict)
    duplicates: List[Tuple[str, StateNode]] = field(default_factory=list)
    _names: Dict[int, str] = field(default_factory=dict, repr=False)

    def qualified_name_of(self, node: StateNode) -> Optional[str]:
        return self._names.get(id(node))

    def get(self, qualified_name: str) -> Optional[StateNode]:
        return self.states.get(qualified_name)

    def __contains__(self, qualified_name: object) -> bool:
        return qualified_name in self.states

    def items(self):
        return self.states.items()


def build_index(states: StateMachineModel) -> StateIndex:
    """
    深度优先分配限定名

    重复的限定名只保留第一次出现的节点，后续出现记入 duplicates，
    但仍继续下探其子状态，以便一次报告所有独立问题。
    """
    index = StateIndex()

    def visit(nodes: StateMachineModel, parent: Optional[StateNode], parent_name: Optional[str]) -> None:
        for node in nodes:
            node.parent = parent
            qualified_name = qualify(parent_name, node.name)
            index._names[id(node)] = qualified_name
            if qualified_name in index.states:
                index.duplicates.append((qualified_name, node))
            else:
                index.states[qualified_name] = node
            visit(node.sub_states, node, qualified_name)

    visit(states, None, None)
    return index


def resolve_target(index: StateIndex, source: StateNode, target_name: str) -> Optional[str]:
    """按 子状态 -> 兄弟状态 -> 顶层 的顺序解析转换目标"""
    source_name = index.qualified_name_of(source)
    if source_name is not None and source.has_sub_state(target_name):
        return qualify(source_name, target_name)

    parent = source.parent
    if parent is not None and parent.has_sub_state(target_name):
        parent_name = index.qualified_name_of(parent)
        if parent_name is not None:
            return qualify(parent_name, target_name)

    if target_name in index:
        return target_name
    return None


def find_node_by_qualified_name(states: StateMachineModel, qualified_name: str) -> Optional[StateNode]:
    """沿限定名逐级查找节点"""
    node: Optional[StateNode] = None
    candidates = states
    for part in qualified_name.split(SEPARATOR):
        node = next((candidate for candidate in candidates if candidate.name == part), None)
        if node is None:
            return None
        candidates = node.sub_states
    return node
