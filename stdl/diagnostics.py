"""
诊断信息定义

严重程度与 LSP 保持一致；所有诊断在产出前都会把范围钳制到文档合法区间内。
"""
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, List, Optional, Sequence

from .tokens import Position, Range, Token, TokenType

SOURCE_TOKENIZER = "stdl-tokenizer"
SOURCE_PARSER = "stdl-parser"
SOURCE_SEMANTIC = "stdl-semantic"


class DiagnosticSeverity(IntEnum):
    """诊断严重程度"""
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


@dataclass(frozen=True)
class Diagnostic:
    """单条诊断"""
    message: str
    range: Range
    severity: DiagnosticSeverity = DiagnosticSeverity.ERROR
    source: str = SOURCE_PARSER

    @property
    def is_error(self) -> bool:
        return self.severity == DiagnosticSeverity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "range": self.range.to_dict(),
            "severity": int(self.severity),
            "source": self.source,
        }


def clamp_range(range_: Optional[Range], lines: Sequence[str]) -> Optional[Range]:
    """
    将范围钳制到文档行列边界内

    Args:
        range_: 原始范围，可能越界或为空
        lines: 文档各行文本（不含换行符）

    Returns:
        合法范围；文档没有任何行时返回 None
    """
    if not lines:
        return None
    if range_ is None:
        range_ = Range.create(0, 0, 0, 0)

    last_line = len(lines) - 1
    start_line = min(max(0, range_.start.line), last_line)
    end_line = min(max(0, range_.end.line), last_line)
    start_char = max(0, range_.start.character)
    end_char = max(0, range_.end.character)

    start_char = min(start_char, len(lines[start_line]))
    if start_line == end_line:
        end_char = min(max(start_char, end_char), len(lines[end_line]))
    else:
        end_char = min(end_char, len(lines[end_line]))

    if start_line > end_line:
        # 起止颠倒时退化为起点处的空范围
        return Range(Position(end_line, end_char), Position(end_line, end_char))
    return Range(Position(start_line, start_char), Position(end_line, end_char))


def tokenizer_diagnostics(tokens: List[Token], lines: Sequence[str]) -> List[Diagnostic]:
    """把 Unrecognized Token 转为词法错误"""
    diagnostics: List[Diagnostic] = []
    for token in tokens:
        if token.type != TokenType.UNRECOGNIZED:
            continue
        clamped = clamp_range(token.range, lines)
        if clamped is None:
            continue
        diagnostics.append(Diagnostic(
            message=f'Unrecognized STDL syntax: "{token.text}"',
            range=clamped,
            severity=DiagnosticSeverity.ERROR,
            source=SOURCE_TOKENIZER,
        ))
    return diagnostics


def has_errors(diagnostics: List[Diagnostic]) -> bool:
    return any(d.is_error for d in diagnostics)
