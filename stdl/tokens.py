"""
词法单元定义

定义源码位置、范围以及分词器产出的 Token 类型。
位置与范围采用 LSP 约定：行列均从 0 开始，范围终点不包含在内。
"""
from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Position:
    """源码位置"""
    line: int
    character: int

    def to_dict(self) -> dict:
        return {"line": self.line, "character": self.character}


@dataclass(frozen=True)
class Range:
    """源码范围"""
    start: Position
    end: Position

    @classmethod
    def create(cls, start_line: int, start_char: int, end_line: int, end_char: int) -> "Range":
        return cls(Position(start_line, start_char), Position(end_line, end_char))

    @classmethod
    def span(cls, first: "Range", last: "Range") -> "Range":
        """从 first 的起点到 last 的终点"""
        return cls(first.start, last.end)

    def contains(self, position: Position) -> bool:
        """单行范围内的命中判断（包含终点列，便于光标落在词尾）"""
        return (
            position.line == self.start.line
            and self.start.character <= position.character <= self.end.character
        )

    def to_dict(self) -> dict:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}


class TokenType(str, Enum):
    """Token 类型"""
    STATE_DECLARATION = "StateDeclaration"
    EVENT = "Event"
    ACTION = "Action"
    TRANSITION = "Transition"
    GUARD_START = "GuardStart"
    GUARD_CONTENT = "GuardContent"
    GUARD_END = "GuardEnd"
    ON_ENTRY = "OnEntryKeyword"
    ON_EXIT = "OnExitKeyword"
    INITIAL = "InitialKeyword"
    BLOCK_START = "BlockStart"
    BLOCK_END = "BlockEnd"
    NEWLINE = "NewLine"
    UNRECOGNIZED = "Unrecognized"
    EOF = "EndOfInput"


@dataclass(frozen=True)
class Token:
    """词法单元"""
    type: TokenType
    text: str
    range: Range
    indentation: int

    def __repr__(self) -> str:
        return (
            f"Token({self.type.value}, {self.text!r}, "
            f"{self.range.start.line}:{self.range.start.character})"
        )
