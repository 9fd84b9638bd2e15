"""
STDL (State Transition Description Language) 前端

分词、解析、语义验证、模型转换，以及导航与图表渲染。
"""
from .analysis import DocumentAnalysis, analyze
from .diagnostics import Diagnostic, DiagnosticSeverity
from .parser import ParseResult, Parser, parse
from .tokenizer import Tokenizer, tokenize
from .tokens import Position, Range, Token, TokenType

__all__ = [
    "DocumentAnalysis",
    "analyze",
    "Diagnostic",
    "DiagnosticSeverity",
    "ParseResult",
    "Parser",
    "parse",
    "Tokenizer",
    "tokenize",
    "Position",
    "Range",
    "Token",
    "TokenType",
]
