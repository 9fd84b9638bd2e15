"""
分词器测试

测试覆盖:
- 缩进转换为 BlockStart / BlockEnd
- 行类型识别优先级与关键字边界
- 守卫（嵌套方括号、未闭合）
- 注释与空行
"""
from stdl.tokenizer import strip_trailing_comment, tokenize
from stdl.tokens import Range, TokenType


def types_of(text):
    return [t.type for t in tokenize(text) if t.type != TokenType.NEWLINE]


class TestIndentation:
    """缩进栈测试"""

    def test_nested_blocks_are_balanced(self):
        """嵌套输入的 BlockStart 与 BlockEnd 数量相等"""
        text = "A\n  - e\n    -> B\n  C\n    D\nB\n"
        kinds = types_of(text)
        assert kinds.count(TokenType.BLOCK_START) == kinds.count(TokenType.BLOCK_END)
        assert kinds[-1] == TokenType.EOF

    def test_token_sequence(self):
        """基本序列"""
        assert types_of("A\n  - e\n    -> B\nB\n") == [
            TokenType.STATE_DECLARATION,
            TokenType.BLOCK_START,
            TokenType.EVENT,
            TokenType.BLOCK_START,
            TokenType.TRANSITION,
            TokenType.BLOCK_END,
            TokenType.BLOCK_END,
            TokenType.STATE_DECLARATION,
            TokenType.EOF,
        ]

    def test_blocks_closed_at_end_of_input(self):
        """文件结尾处补齐 BlockEnd"""
        tokens = tokenize("A\n  B\n    C")
        block_ends = [t for t in tokens if t.type == TokenType.BLOCK_END]
        assert len(block_ends) == 2
        assert all(t.range.start.line == 3 for t in block_ends)

    def test_inconsistent_dedent_is_unrecognized(self):
        """缩进落在两个层级之间"""
        tokens = tokenize("A\n    B\n  C\n")
        unrecognized = [t for t in tokens if t.type == TokenType.UNRECOGNIZED]
        assert len(unrecognized) == 1
        assert unrecognized[0].text == "C"
        assert unrecognized[0].range.start.line == 2

    def test_blank_and_comment_lines_emit_single_newline(self):
        """空行与注释行不产生重复 NewLine"""
        tokens = tokenize("A\n\n// comment\n\nB\n")
        for previous, current in zip(tokens, tokens[1:]):
            assert not (previous.type == TokenType.NEWLINE and current.type == TokenType.NEWLINE)
        assert [t.text for t in tokens if t.type == TokenType.STATE_DECLARATION] == ["A", "B"]

    def test_empty_document(self):
        tokens = tokenize("")
        assert [t.type for t in tokens] == [TokenType.EOF]


class TestClassification:
    """行类型识别测试"""

    def test_keywords(self):
        kinds = types_of("S\n  OnEntry\n    / a\n  OnExit\n    / b\n  Initial\n    -> T\n  T\n")
        assert TokenType.ON_ENTRY in kinds
        assert TokenType.ON_EXIT in kinds
        assert TokenType.INITIAL in kinds

    def test_keyword_prefix_is_a_state(self):
        """InitialState 是状态名而不是关键字"""
        tokens = tokenize("InitialState\n")
        assert tokens[0].type == TokenType.STATE_DECLARATION
        assert tokens[0].text == "InitialState"

    def test_state_name_with_spaces(self):
        tokens = tokenize("Door Closed\n")
        assert tokens[0].type == TokenType.STATE_DECLARATION
        assert tokens[0].text == "Door Closed"
        assert tokens[0].range == Range.create(0, 0, 0, 11)

    def test_state_with_trailing_symbols(self):
        """状态名照常识别，行尾多余内容单独成为未识别 Token"""
        tokens = tokenize("Idle!\n")
        assert tokens[0].type == TokenType.STATE_DECLARATION
        assert tokens[0].text == "Idle"
        assert tokens[0].range == Range.create(0, 0, 0, 4)
        assert tokens[1].type == TokenType.UNRECOGNIZED
        assert tokens[1].text == "!"
        assert tokens[1].range == Range.create(0, 4, 0, 5)

    def test_line_without_word_start_is_unrecognized(self):
        tokens = tokenize("!!\n")
        assert tokens[0].type == TokenType.UNRECOGNIZED
        assert tokens[0].text == "!!"

    def test_action_range_starts_at_text(self):
        tokens = tokenize("S\n  OnEntry\n    /   beep\n")
        action = next(t for t in tokens if t.type == TokenType.ACTION)
        assert action.text == "beep"
        assert action.range == Range.create(2, 8, 2, 12)

    def test_transition_range_covers_target(self):
        tokens = tokenize("S\n  - e\n    -> Busy\n")
        transition = next(t for t in tokens if t.type == TokenType.TRANSITION)
        assert transition.text == "Busy"
        assert transition.range == Range.create(2, 7, 2, 11)

    def test_transition_with_trailing_junk(self):
        tokens = tokenize("S\n  - e\n    -> Busy!\n")
        transition = next(t for t in tokens if t.type == TokenType.TRANSITION)
        junk = next(t for t in tokens if t.type == TokenType.UNRECOGNIZED)
        assert transition.text == "Busy"
        assert junk.text == "!"

    def test_trailing_comment_is_stripped(self):
        tokens = tokenize("S // state\n  OnEntry\n    / beep // later\n")
        assert tokens[0].text == "S"
        action = next(t for t in tokens if t.type == TokenType.ACTION)
        assert action.text == "beep"

    def test_strip_trailing_comment(self):
        assert strip_trailing_comment("/ beep  // note") == "/ beep"
        assert strip_trailing_comment("-> X   ") == "-> X"


class TestGuards:
    """守卫测试"""

    def test_guard_tokens(self):
        tokens = [t for t in tokenize("S\n  - open [ door == 1 ]\n") if t.type != TokenType.NEWLINE]
        kinds = [t.type for t in tokens]
        start = kinds.index(TokenType.EVENT)
        assert kinds[start:start + 4] == [
            TokenType.EVENT,
            TokenType.GUARD_START,
            TokenType.GUARD_CONTENT,
            TokenType.GUARD_END,
        ]
        assert tokens[start].text == "open"
        assert tokens[start + 2].text == "door == 1"

    def test_nested_brackets(self):
        tokens = tokenize("S\n  - go [items[0] > 1] // check\n")
        content = next(t for t in tokens if t.type == TokenType.GUARD_CONTENT)
        assert content.text == "items[0] > 1"

    def test_empty_guard(self):
        tokens = tokenize("S\n  - go []\n")
        content = next(t for t in tokens if t.type == TokenType.GUARD_CONTENT)
        assert content.text == ""

    def test_unterminated_guard(self):
        tokens = tokenize("S\n  - go [x > 1\n")
        kinds = [t.type for t in tokens]
        assert TokenType.GUARD_START in kinds
        assert TokenType.GUARD_END not in kinds
        unrecognized = next(t for t in tokens if t.type == TokenType.UNRECOGNIZED)
        assert unrecognized.text == "[x > 1"

    def test_text_after_event_without_guard(self):
        tokens = tokenize("S\n  - go now!\n")
        unrecognized = next(t for t in tokens if t.type == TokenType.UNRECOGNIZED)
        assert unrecognized.text == "!"
