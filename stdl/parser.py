"""
STDL 语法分析器

递归下降解析 Token 序列，构建状态树并收集语法诊断。

设计原则：
- 解析器从不抛出异常，所有畸形结构都降级为诊断
- 遇到意外 Token 时跳过该 Token（或整个意外缩进块）后继续，
  保证一次解析能报告尽可能多的问题
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .diagnostics import SOURCE_PARSER, Diagnostic, DiagnosticSeverity, clamp_range
from .nodes import ActionNode, EventHandlerNode, StateMachineModel, StateNode, TransitionNode
from .tokenizer import split_lines, tokenize
from .tokens import Range, Token, TokenType

logger = logging.getLogger(__name__)


@dataclass
class ParseResult:
    """解析结果"""
    states: StateMachineModel = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


class Parser:
    """
    STDL 递归下降解析器

    Args:
        tokens: 分词器输出（NewLine 会在内部过滤）
        text: 源码全文，用于钳制诊断范围
    """

    def __init__(self, tokens: Sequence[Token], text: str):
        self.tokens: List[Token] = [t for t in tokens if t.type != TokenType.NEWLINE]
        if not self.tokens or self.tokens[-1].type != TokenType.EOF:
            self.tokens.append(Token(TokenType.EOF, "", Range.create(0, 0, 0, 0), 0))
        self.lines = split_lines(text)
        self.current = 0
        self.diagnostics: List[Diagnostic] = []

    def parse(self) -> ParseResult:
        states: StateMachineModel = []
        while not self._is_at_end():
            if self._match(TokenType.STATE_DECLARATION):
                states.append(self._parse_state(None))
            elif self._match(TokenType.BLOCK_START, TokenType.BLOCK_END):
                # 顶层多余的缩进标记直接忽略，内部的状态照常解析
                continue
            else:
                self._add_diagnostic("Expected state declaration at the top level.", self._peek().range)
                self._advance()
        return ParseResult(states=states, diagnostics=self.diagnostics)

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------

    def _parse_state(self, parent: Optional[StateNode]) -> StateNode:
        state_token = self._previous()
        state = StateNode(
            name=state_token.text,
            range=state_token.range,
            full_range=state_token.range,
            indentation=state_token.indentation,
            parent=parent,
        )

        # 声明行尾的多余内容已由分词器报告，这里跳过以保留状态体
        while (
            self._check(TokenType.UNRECOGNIZED)
            and self._peek().range.start.line == state_token.range.start.line
        ):
            self._advance()

        if not self._match(TokenType.BLOCK_START):
            return state

        initial_found = False
        while not self._check(TokenType.BLOCK_END) and not self._is_at_end():
            if self._match(TokenType.ON_ENTRY):
                state.on_entry_actions.extend(self._parse_action_block())
            elif self._match(TokenType.ON_EXIT):
                state.on_exit_actions.extend(self._parse_action_block())
            elif self._match(TokenType.INITIAL):
                if initial_found:
                    self._add_diagnostic(
                        "Multiple Initial pseudo-states defined within the same composite state.",
                        self._previous().range,
                    )
                initial_found = True
                self._parse_initial(state)
            elif self._match(TokenType.EVENT):
                state.event_handlers.append(self._parse_event_handler())
            elif self._match(TokenType.STATE_DECLARATION):
                state.sub_states.append(self._parse_state(state))
            elif self._check(TokenType.BLOCK_START):
                self._add_diagnostic("Unexpected indent/dedent inside state body.", self._peek().range)
                self._skip_block()
            else:
                self._add_diagnostic(
                    "Expected OnEntry, OnExit, Initial, Event, or nested State.",
                    self._peek().range,
                )
                self._advance()

        if self._is_at_end():
            self._add_diagnostic("Reached end of file unexpectedly. Missing dedent?", state.range)
            return state

        state.full_range = Range.span(state.range, self._last_content_range(state.range))
        self._advance()
        return state

    def _parse_initial(self, state: StateNode) -> None:
        keyword_range = self._previous().range
        if not self._match(TokenType.BLOCK_START):
            self._add_diagnostic("Expected indent for Initial pseudo-state transition.", self._peek().range)
            return

        transition_found = False
        while not self._check(TokenType.BLOCK_END) and not self._is_at_end():
            if self._match(TokenType.TRANSITION):
                token = self._previous()
                if transition_found or state.initial_sub_state_name is not None:
                    self._add_diagnostic("Multiple transitions defined for the Initial pseudo-state.", token.range)
                else:
                    state.initial_sub_state_name = token.text
                    state.initial_transition_range = token.range
                transition_found = True
            elif self._check(TokenType.BLOCK_START):
                self._add_diagnostic("Unexpected indent inside Initial pseudo-state block.", self._peek().range)
                self._skip_block()
            else:
                self._add_diagnostic("Expected transition (->) within Initial pseudo-state block.", self._peek().range)
                self._advance()

        if not transition_found:
            self._add_diagnostic("Expected transition (->) following Initial pseudo-state.", keyword_range)

        if self._is_at_end():
            self._add_diagnostic(
                "Reached end of file unexpectedly. Missing dedent for Initial pseudo-state block?",
                keyword_range,
            )
        elif not self._match(TokenType.BLOCK_END):
            self._add_diagnostic("Expected dedent to close Initial pseudo-state block.", self._peek().range)

    # ------------------------------------------------------------------
    # 动作块与事件处理器
    # ------------------------------------------------------------------

    def _parse_action_block(self) -> List[ActionNode]:
        actions: List[ActionNode] = []
        if not self._match(TokenType.BLOCK_START):
            self._add_diagnostic("Expected indent for action block.", self._peek().range)
            return actions

        while not self._check(TokenType.BLOCK_END) and not self._is_at_end():
            if self._match(TokenType.ACTION):
                token = self._previous()
                actions.append(ActionNode(name=token.text, range=token.range))
            elif self._check(TokenType.BLOCK_START):
                self._add_diagnostic("Unexpected indent inside action block.", self._peek().range)
                self._skip_block()
            else:
                self._add_diagnostic(
                    "Expected action (starting with /) within the action block.",
                    self._peek().range,
                )
                self._advance()

        if self._is_at_end():
            error_range = actions[-1].range if actions else self._previous().range
            self._add_diagnostic(
                "Reached end of file unexpectedly. Missing dedent for action block?",
                error_range,
            )
        elif not self._match(TokenType.BLOCK_END):
            self._add_diagnostic("Expected dedent to close action block.", self._peek().range)
        return actions

    def _parse_event_handler(self) -> EventHandlerNode:
        event_token = self._previous()
        guard: Optional[str] = None
        handler_range = event_token.range

        if self._match(TokenType.GUARD_START):
            guard_start = self._previous()
            guard = ""
            handler_range = Range.span(event_token.range, guard_start.range)
            if self._match(TokenType.GUARD_CONTENT):
                guard = self._previous().text
                handler_range = Range.span(event_token.range, self._previous().range)
            if self._match(TokenType.GUARD_END):
                handler_range = Range.span(event_token.range, self._previous().range)
            else:
                self._add_diagnostic('Expected closing "]" for guard condition.', self._peek().range)
                # 同一行上残留的未识别内容属于这个守卫，一并跳过
                while (
                    self._check(TokenType.UNRECOGNIZED)
                    and self._peek().range.start.line == guard_start.range.start.line
                ):
                    self._advance()

        handler = EventHandlerNode(event=event_token.text, range=handler_range, guard=guard)

        if not self._match(TokenType.BLOCK_START):
            return handler

        while not self._check(TokenType.BLOCK_END) and not self._is_at_end():
            if self._match(TokenType.ACTION):
                token = self._previous()
                handler.actions.append(ActionNode(name=token.text, range=token.range))
            elif self._match(TokenType.TRANSITION):
                token = self._previous()
                if handler.transition is not None:
                    self._add_diagnostic("Multiple transitions defined for the same event handler.", token.range)
                else:
                    handler.transition = TransitionNode(target_state_name=token.text, range=token.range)
            elif self._check(TokenType.BLOCK_START):
                self._add_diagnostic("Unexpected indent inside event handler block.", self._peek().range)
                self._skip_block()
            else:
                self._add_diagnostic("Expected action (/) or transition (->).", self._peek().range)
                self._advance()

        if self._is_at_end():
            self._add_diagnostic(
                "Reached end of file unexpectedly. Missing dedent for event handler block?",
                handler.range,
            )
        elif not self._match(TokenType.BLOCK_END):
            self._add_diagnostic("Expected dedent to close event handler block.", self._peek().range)
        return handler

    # ------------------------------------------------------------------
    # Token 游标
    # ------------------------------------------------------------------

    def _skip_block(self) -> None:
        """跳过一个完整的缩进块（含配对的 BlockEnd）"""
        depth = 0
        while not self._is_at_end():
            token = self._advance()
            if token.type == TokenType.BLOCK_START:
                depth += 1
            elif token.type == TokenType.BLOCK_END:
                depth -= 1
                if depth == 0:
                    return

    def _last_content_range(self, default: Range) -> Range:
        for index in range(self.current - 1, -1, -1):
            token = self.tokens[index]
            if token.type not in (TokenType.BLOCK_START, TokenType.BLOCK_END):
                return token.range
        return default

    def _match(self, *types: TokenType) -> bool:
        for token_type in types:
            if self._check(token_type):
                self._advance()
                return True
        return False

    def _check(self, token_type: TokenType) -> bool:
        if self._is_at_end():
            return False
        return self._peek().type == token_type

    def _advance(self) -> Token:
        if not self._is_at_end():
            self.current += 1
        return self._previous()

    def _is_at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self) -> Token:
        return self.tokens[self.current]

    def _previous(self) -> Token:
        return self.tokens[max(0, self.current - 1)]

    def _add_diagnostic(
        self,
        message: str,
        range_: Optional[Range],
        severity: DiagnosticSeverity = DiagnosticSeverity.ERROR,
    ) -> None:
        clamped = clamp_range(range_, self.lines)
        if clamped is None:
            logger.debug("Dropping diagnostic for empty document: %s", message)
            return
        self.diagnostics.append(Diagnostic(message=message, range=clamped, severity=severity, source=SOURCE_PARSER))


def parse(text: str) -> ParseResult:
    """分词并解析整篇文档"""
    return Parser(tokenize(text), text).parse()
