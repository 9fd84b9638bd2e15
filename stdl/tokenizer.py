"""
STDL 分词器

核心职责：
1. 逐行扫描源码，将缩进转换为显式的 BlockStart / BlockEnd
2. 按固定优先级识别行类型（OnEntry、OnExit、Initial、状态、事件、动作、转换）
3. 解析带嵌套方括号的守卫条件

设计原则：
- 分词从不失败，无法识别的内容产出 Unrecognized，交给后续阶段报告诊断
- 行尾 // 注释在提取名称、动作、守卫之前剥离
"""
import logging
import re
from typing import List, Optional

from .tokens import Range, Token, TokenType

logger = logging.getLogger(__name__)

COMMENT_MARKER = "//"

_LINE_SPLIT = re.compile(r"\r?\n")
_COMMENT_LINE = re.compile(r"^\s*//")
_EMPTY_LINE = re.compile(r"^\s*$")
_LEADING_WS = re.compile(r"^(\s*)")

_ON_ENTRY = re.compile(r"^OnEntry\b")
_ON_EXIT = re.compile(r"^OnExit\b")
_INITIAL = re.compile(r"^Initial\b")
_STATE = re.compile(r"^(\w[\w\s]*)")
_EVENT = re.compile(r"^-\s*(\w[\w\s]*)")
_ACTION = re.compile(r"^/\s*(.*)")
_TRANSITION = re.compile(r"^->\s*(\w[\w\s]*)")


def split_lines(text: str) -> List[str]:
    """按 \\n 或 \\r\\n 切分文档"""
    return _LINE_SPLIT.split(text)


def strip_trailing_comment(content: str) -> str:
    """去掉行尾 // 注释及其前面的空白"""
    index = content.find(COMMENT_MARKER)
    if index == -1:
        return content.rstrip()
    return content[:index].rstrip()


class Tokenizer:
    """
    基于缩进栈的分词器

    使用方式:
        tokens = Tokenizer(text).tokenize()
    """

    def __init__(self, text: str):
        self.lines = split_lines(text)
        self.tokens: List[Token] = []
        self._indent_stack: List[int] = [0]

    @property
    def current_indentation(self) -> int:
        return self._indent_stack[-1]

    def tokenize(self) -> List[Token]:
        for line_num, line in enumerate(self.lines):
            if _COMMENT_LINE.match(line) or _EMPTY_LINE.match(line):
                if self.tokens:
                    self._push_newline(line_num, len(line))
                continue

            indentation = len(_LEADING_WS.match(line).group(1))
            if not self._reconcile_indentation(line, line_num, indentation):
                self._push_newline(line_num, len(line))
                continue

            self._classify(line, line_num, indentation)
            self._push_newline(line_num, len(line))

        eof_line = len(self.lines)
        while len(self._indent_stack) > 1:
            self._indent_stack.pop()
            self._emit(TokenType.BLOCK_END, "", Range.create(eof_line, 0, eof_line, 0), self.current_indentation)

        self._emit(TokenType.EOF, "", Range.create(eof_line, 0, eof_line, 0), 0)
        return self.tokens

    def _reconcile_indentation(self, line: str, line_num: int, indentation: int) -> bool:
        """
        根据缩进栈产出块标记

        Returns:
            该行缩进是否落在合法层级上
        """
        if indentation > self.current_indentation:
            self._indent_stack.append(indentation)
            self._emit(
                TokenType.BLOCK_START, "",
                Range.create(line_num, 0, line_num, indentation), indentation,
            )
            return True

        while len(self._indent_stack) > 1 and indentation < self.current_indentation:
            self._indent_stack.pop()
            self._emit(
                TokenType.BLOCK_END, "",
                Range.create(line_num, 0, line_num, indentation), self.current_indentation,
            )

        if indentation != self.current_indentation:
            # 缩进落在两个已打开层级之间
            logger.debug("Inconsistent indentation on line %s: %s", line_num, indentation)
            self._emit(
                TokenType.UNRECOGNIZED, line.strip(),
                Range.create(line_num, 0, line_num, len(line)), indentation,
            )
            return False
        return True

    def _classify(self, line: str, line_num: int, indentation: int) -> None:
        content = strip_trailing_comment(line[indentation:])
        if not content:
            # 仅有缩进加行尾注释
            return

        start_col = indentation
        end_col = start_col + len(content)
        full_range = Range.create(line_num, start_col, line_num, end_col)

        if _ON_ENTRY.match(content):
            self._emit(TokenType.ON_ENTRY, "OnEntry", full_range, indentation)
            return
        if _ON_EXIT.match(content):
            self._emit(TokenType.ON_EXIT, "OnExit", full_range, indentation)
            return
        if _INITIAL.match(content):
            self._emit(TokenType.INITIAL, "Initial", full_range, indentation)
            return

        match = _STATE.match(content)
        if match:
            name = match.group(1).strip()
            self._emit(
                TokenType.STATE_DECLARATION, name,
                Range.create(line_num, start_col, line_num, start_col + len(name)), indentation,
            )
            remainder = content[len(name):].strip()
            if remainder:
                remainder_start = start_col + content.index(remainder, len(name))
                self._emit(
                    TokenType.UNRECOGNIZED, remainder,
                    Range.create(line_num, remainder_start, line_num, end_col), indentation,
                )
            return

        match = _EVENT.match(content)
        if match:
            self._classify_event(content, match, line_num, start_col, indentation)
            return

        match = _ACTION.match(content)
        if match:
            action_text = match.group(1).strip()
            action_start = start_col + match.start(1)
            self._emit(
                TokenType.ACTION, action_text,
                Range.create(line_num, action_start, line_num, end_col), indentation,
            )
            return

        match = _TRANSITION.match(content)
        if match:
            target = match.group(1).strip()
            target_start = start_col + match.start(1)
            self._emit(
                TokenType.TRANSITION, target,
                Range.create(line_num, target_start, line_num, target_start + len(target)), indentation,
            )
            remainder = content[match.start(1) + len(target):].strip()
            if remainder:
                remainder_start = start_col + content.index(remainder, match.start(1) + len(target))
                self._emit(
                    TokenType.UNRECOGNIZED, remainder,
                    Range.create(line_num, remainder_start, line_num, end_col), indentation,
                )
            return

        self._emit(TokenType.UNRECOGNIZED, content, full_range, indentation)

    def _classify_event(
        self,
        content: str,
        match: "re.Match[str]",
        line_num: int,
        start_col: int,
        indentation: int,
    ) -> None:
        event_text = match.group(1).strip()
        event_offset = match.start(1)
        event_end = event_offset + len(event_text)
        self._emit(
            TokenType.EVENT, event_text,
            Range.create(line_num, start_col + event_offset, line_num, start_col + event_end), indentation,
        )

        rest = content[event_end:]
        stripped = rest.lstrip()
        if not stripped:
            return

        rest_offset = event_end + (len(rest) - len(stripped))
        if not stripped.startswith("["):
            self._emit(
                TokenType.UNRECOGNIZED, stripped,
                Range.create(line_num, start_col + rest_offset, line_num, start_col + len(content)), indentation,
            )
            return

        guard_start = rest_offset
        self._emit(
            TokenType.GUARD_START, "[",
            Range.create(line_num, start_col + guard_start, line_num, start_col + guard_start + 1), indentation,
        )

        guard_end = self._find_guard_end(content, guard_start)
        if guard_end is None:
            self._emit(
                TokenType.UNRECOGNIZED, content[guard_start:].strip(),
                Range.create(line_num, start_col + guard_start, line_num, start_col + len(content)), indentation,
            )
            return

        raw_guard = content[guard_start + 1:guard_end]
        guard_text = raw_guard.strip()
        content_start = guard_start + 1 + (len(raw_guard) - len(raw_guard.lstrip()))
        self._emit(
            TokenType.GUARD_CONTENT, guard_text,
            Range.create(line_num, start_col + content_start, line_num, start_col + content_start + len(guard_text)),
            indentation,
        )
        self._emit(
            TokenType.GUARD_END, "]",
            Range.create(line_num, start_col + guard_end, line_num, start_col + guard_end + 1), indentation,
        )

        trailing = content[guard_end + 1:].strip()
        if trailing:
            trailing_start = content.index(trailing, guard_end + 1)
            self._emit(
                TokenType.UNRECOGNIZED, trailing,
                Range.create(line_num, start_col + trailing_start, line_num, start_col + len(content)), indentation,
            )

    @staticmethod
    def _find_guard_end(content: str, guard_start: int) -> Optional[int]:
        """返回与 guard_start 处 '[' 配对的 ']' 下标，未闭合返回 None"""
        depth = 0
        for index in range(guard_start, len(content)):
            char = content[index]
            if char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    return index
        return None

    def _push_newline(self, line_num: int, column: int) -> None:
        if self.tokens and self.tokens[-1].type == TokenType.NEWLINE:
            return
        self._emit(
            TokenType.NEWLINE, "\n",
            Range.create(line_num, column, line_num, column), self.current_indentation,
        )

    def _emit(self, token_type: TokenType, text: str, token_range: Range, indentation: int) -> None:
        self.tokens.append(Token(token_type, text, token_range, indentation))


def tokenize(text: str) -> List[Token]:
    """将整篇文档切分为 Token 序列"""
    return Tokenizer(text).tokenize()
