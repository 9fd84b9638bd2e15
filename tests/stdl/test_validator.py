"""
语义验证器测试

测试覆盖:
- 重复状态
- Initial 伪状态检查
- 转换目标解析
- 终态提示
"""
from stdl.diagnostics import DiagnosticSeverity
from stdl.parser import parse
from stdl.tokenizer import split_lines
from stdl.tokens import Range
from stdl.validator import validate


def semantic(text):
    return validate(parse(text).states, split_lines(text))


def errors(text):
    return [d for d in semantic(text) if d.severity == DiagnosticSeverity.ERROR]


class TestDuplicates:
    """重复状态测试"""

    def test_duplicate_reported_once_on_second_occurrence(self):
        duplicates = [d for d in semantic("A\nA\n") if d.message.startswith("Duplicate state")]
        assert len(duplicates) == 1
        assert duplicates[0].message == 'Duplicate state definition: "A"'
        assert duplicates[0].range.start.line == 1

    def test_same_name_under_different_parents_is_fine(self):
        text = "A\n  Initial\n    -> X\n  X\nB\n  Initial\n    -> X\n  X\n"
        assert errors(text) == []


class TestInitial:
    """Initial 伪状态测试"""

    def test_initial_without_substates(self):
        messages = [d.message for d in errors("S\n  Initial\n    -> X\n")]
        assert messages == [
            "State \"S\" defines an 'Initial' pseudo-state but has no substates."
        ]

    def test_initial_target_not_direct_substate(self):
        messages = [d.message for d in errors("S\n  Initial\n    -> Z\n  A\n")]
        assert messages == ['Initial transition target "Z" is not a direct substate of "S".']

    def test_initial_error_points_at_transition(self):
        diagnostic = errors("S\n  Initial\n    -> Z\n  A\n")[0]
        assert diagnostic.range.start.line == 2
        assert diagnostic.source == "stdl-semantic"


class TestInitialChain:
    """入口 Initial 链跳数上限测试"""

    NESTED = "A\n  Initial\n    -> B\n  B\n    Initial\n      -> C\n    C\n"

    def test_chain_within_limit(self):
        text = self.NESTED
        assert errors(text) == []
        assert [d for d in validate(parse(text).states, split_lines(text), max_initial_hops=2) if d.is_error] == []

    def test_chain_over_limit(self):
        text = self.NESTED
        diagnostics = [d for d in validate(parse(text).states, split_lines(text), max_initial_hops=1) if d.is_error]
        assert [d.message for d in diagnostics] == ['Initial transition chain from "A" exceeds 1 hops.']
        assert diagnostics[0].range == Range.create(5, 9, 5, 10)


class TestTransitionTargets:
    """转换目标解析测试"""

    def test_unresolvable_target_reported_once(self):
        found = errors("S\n  - e\n    -> Nowhere\n")
        assert len(found) == 1
        assert found[0].message.startswith('Transition target state "Nowhere" cannot be resolved from state "S".')
        assert found[0].range.start.line == 2

    def test_sibling_and_top_level_targets_resolve(self):
        text = (
            "P\n"
            "  Initial\n"
            "    -> A\n"
            "  A\n"
            "    - next\n"
            "      -> B\n"
            "    - leave\n"
            "      -> Done\n"
            "  B\n"
            "Done\n"
        )
        assert errors(text) == []

    def test_cousin_is_not_reachable_by_short_name(self):
        text = "X\n  Initial\n    -> A\n  A\n    - e\n      -> C\nY\n  Initial\n    -> C\n  C\n"
        found = errors(text)
        assert len(found) == 1
        assert '"C" cannot be resolved from state "X.A"' in found[0].message


class TestTerminalStates:
    """终态提示测试"""

    def test_leaf_without_transitions_is_hinted(self):
        found = semantic("A\n  - e\n    -> B\nB\n")
        hints = [d for d in found if d.severity == DiagnosticSeverity.HINT]
        assert [d.message for d in hints] == ['State "B" is terminal (no outgoing transitions).']

    def test_composite_without_initial_is_information(self):
        found = semantic("C\n  D\n")
        info = [d for d in found if d.severity == DiagnosticSeverity.INFORMATION]
        assert len(info) == 1
        assert info[0].message.startswith('Composite state "C" has no \'Initial\' pseudo-state')
        hints = [d for d in found if d.severity == DiagnosticSeverity.HINT]
        assert [d.message for d in hints] == ['State "C.D" is terminal (no outgoing transitions).']

    def test_composite_with_initial_is_not_flagged(self):
        found = semantic("C\n  Initial\n    -> D\n  D\n    - e\n      -> D\n")
        assert found == []
