"""
文档分析入口

一次完整的前端流水线：分词 -> 解析 -> 语义验证。
每次调用都从源码重新构建，不缓存任何中间结果。
"""
from dataclasses import dataclass, field
from typing import List, Optional

from .diagnostics import Diagnostic, tokenizer_diagnostics
from .naming import DEFAULT_MAX_INITIAL_HOPS
from .nodes import StateMachineModel
from .parser import Parser
from .tokenizer import split_lines, tokenize
from .tokens import Token
from .validator import validate


@dataclass
class DocumentAnalysis:
    """单篇文档的分析结果"""
    tokens: List[Token] = field(default_factory=list)
    states: StateMachineModel = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)


def analyze(
    text: str,
    max_problems: Optional[int] = None,
    max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS,
) -> DocumentAnalysis:
    """
    分析一篇 STDL 文档

    Args:
        text: 文档全文
        max_problems: 诊断条数上限，None 表示不截断
        max_initial_hops: Initial 链的最大跳数

    Returns:
        Token、状态森林与按 词法 -> 语法 -> 语义 顺序排列的诊断
    """
    lines = split_lines(text)
    tokens = tokenize(text)
    diagnostics = tokenizer_diagnostics(tokens, lines)

    parsed = Parser(tokens, text).parse()
    diagnostics.extend(parsed.diagnostics)
    diagnostics.extend(validate(parsed.states, lines, max_initial_hops))

    if max_problems is not None:
        diagnostics = diagnostics[:max_problems]
    return DocumentAnalysis(tokens=tokens, states=parsed.states, diagnostics=diagnostics)
