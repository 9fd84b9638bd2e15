"""
跳转定义与查找引用

两者都是语法树上的纯函数：先按光标位置定位 Token，再复用与验证器相同的目标解析规则。
"""
import logging
from typing import List, Optional, Tuple

from .naming import StateIndex, build_index, resolve_target
from .nodes import StateMachineModel, StateNode, walk
from .parser import Parser
from .tokenizer import tokenize
from .tokens import Position, Range, Token, TokenType

logger = logging.getLogger(__name__)


def token_at(tokens: List[Token], position: Position, token_type: Optional[TokenType] = None) -> Optional[Token]:
    """返回光标所在的第一个 Token（可按类型过滤）"""
    for token in tokens:
        if token_type is not None and token.type != token_type:
            continue
        if token.range.contains(position):
            return token
    return None


def _parse(text: str) -> Tuple[List[Token], StateMachineModel]:
    tokens = tokenize(text)
    return tokens, Parser(tokens, text).parse().states


def _transition_owner(states: StateMachineModel, token: Token) -> Tuple[Optional[StateNode], bool]:
    """
    找到写有该转换 Token 的状态

    Returns:
        (源状态, 是否为 Initial 伪状态的转换)
    """
    for node in walk(states):
        if node.initial_transition_range == token.range:
            return node, True
        for handler in node.event_handlers:
            if handler.transition is not None and handler.transition.range == token.range:
                return node, False
    return None, False


def find_definition(text: str, position: Position) -> Optional[Range]:
    """
    跳转到转换目标状态的声明

    Args:
        text: 文档全文
        position: 光标位置（需落在 -> 之后的目标名上）

    Returns:
        目标状态名的范围；无法解析时返回 None
    """
    tokens, states = _parse(text)
    token = token_at(tokens, position, TokenType.TRANSITION)
    if token is None:
        return None

    source, is_initial = _transition_owner(states, token)
    if source is None:
        logger.debug("Could not determine source state for transition at %s:%s", position.line, position.character)
        return None

    index = build_index(states)
    if is_initial:
        sub_state = source.find_sub_state(token.text)
        return sub_state.range if sub_state else None

    target = resolve_target(index, source, token.text)
    node = index.get(target) if target else None
    if node is None:
        logger.debug("Could not find definition for %r from %s", token.text, index.qualified_name_of(source))
        return None
    return node.range


def _declaration_qualified_name(index: StateIndex, states: StateMachineModel, token: Token) -> Optional[str]:
    for node in walk(states):
        if node.range.start == token.range.start and node.name == token.text:
            return index.qualified_name_of(node)
    return None


def find_references(text: str, position: Position) -> List[Range]:
    """
    查找指向某状态的所有转换

    Args:
        text: 文档全文
        position: 光标位置（需落在状态声明上）

    Returns:
        引用处事件处理器的范围列表，按文档顺序
    """
    tokens, states = _parse(text)
    token = token_at(tokens, position, TokenType.STATE_DECLARATION)
    if token is None:
        return []

    index = build_index(states)
    qualified_name = _declaration_qualified_name(index, states, token)
    if qualified_name is None:
        return []

    references: List[Range] = []
    for node in walk(states):
        for handler in node.event_handlers:
            if handler.transition is None:
                continue
            if resolve_target(index, node, handler.transition.target_state_name) == qualified_name:
                references.append(handler.range)

    logger.debug("Found %s references for %s", len(references), qualified_name)
    return references

