"""
FSM 引擎测试

测试覆盖:
- 单步执行的四种结果
- 守卫精确匹配（None 与 "" 等价）
- 效果顺序：动作 -> OnExit -> 状态变更 -> OnEntry -> Initial 链
- 歧义选择、会话启动效果与动作查询
"""
import logging

import pytest

from fsm.engine import FSMEngine, enter_initial, get_action_info, resolve_choice, step
from fsm.states import (
    INITIAL_TRANSITION_EVENT,
    ChoiceRequired,
    EffectKind,
    StepError,
    StepWarning,
    TransitionTaken,
)
from stdl.parser import parse
from stdl.tokens import Range
from stdl.transformer import transform_model


def build(text):
    return transform_model(parse(text).states)


def effects_of(outcome):
    return [(e.kind, e.state, e.name) for e in outcome.effects]


NESTED = (
    "Outer\n"
    "  OnExit\n"
    "    / outer out\n"
    "  Initial\n"
    "    -> Inner\n"
    "  Inner\n"
    "    OnExit\n"
    "      / inner out\n"
    "    - go\n"
    "      / act one\n"
    "      / act two\n"
    "      -> Target\n"
    "Target\n"
    "  OnEntry\n"
    "    / target in\n"
    "  Initial\n"
    "    -> Leaf\n"
    "  Leaf\n"
    "    OnEntry\n"
    "      / leaf in\n"
)

COMPOSITE = (
    "X\n"
    "  - go\n"
    "    -> C\n"
    "C\n"
    "  OnEntry\n"
    "    / c in\n"
    "  Initial\n"
    "    -> D\n"
    "  D\n"
    "    OnEntry\n"
    "      / d in\n"
)


class TestStep:
    """单步执行测试"""

    def test_simple_transition(self):
        machine = build("Idle\n  - go\n    -> Busy\nBusy\n")
        outcome = step(machine, "Idle", "go", "")
        assert isinstance(outcome, TransitionTaken)
        assert outcome.new_state == "Busy"
        assert outcome.to_dict()["newState"] == "Busy"

    def test_guarded_ambiguity_returns_choices(self):
        machine = build("S\n  - e [x]\n    -> T\n  - e [x]\n    -> U\n")
        outcome = step(machine, "S", "e", "x")
        assert isinstance(outcome, ChoiceRequired)
        assert [c.target for c in outcome.choices] == ["T", "U"]
        assert all(c.guard == "x" for c in outcome.choices)
        assert outcome.to_dict()["kind"] == "choices"

    def test_unresolved_target_is_error(self):
        machine = build("S\n  - e\n    -> NoSuchState\n")
        outcome = step(machine, "S", "e")
        assert isinstance(outcome, StepError)
        assert outcome.message == 'Transition target state "NoSuchState" could not be resolved.'

    @pytest.mark.parametrize("guard", [None, ""])
    def test_missing_guard_equals_empty_guard(self, guard):
        machine = build("S\n  - e\n    -> T\nT\n")
        outcome = step(machine, "S", "e", guard)
        assert isinstance(outcome, TransitionTaken)
        assert outcome.new_state == "T"

    def test_guard_is_compared_exactly(self):
        machine = build("S\n  - e [ x > 1 ]\n    -> T\nT\n")
        assert isinstance(step(machine, "S", "e", "x > 1"), TransitionTaken)
        assert isinstance(step(machine, "S", "e", "x>1"), StepWarning)

    def test_guarded_handler_needs_guard(self):
        machine = build("S\n  - e [ok]\n    -> T\nT\n")
        outcome = step(machine, "S", "e")
        assert isinstance(outcome, StepWarning)
        assert outcome.message == 'No transition defined for event "e" with guard (no guard) in state "S".'

    def test_unknown_event(self):
        machine = build("S\n  - e\n    -> T\nT\n")
        outcome = step(machine, "S", "nothing")
        assert outcome.to_dict() == {
            "kind": "warning",
            "warning": 'No transition defined for event "nothing" in state "S".',
        }

    def test_missing_current_state(self):
        machine = build("S\n  - e\n    -> T\nT\n")
        outcome = step(machine, "Gone", "e")
        assert outcome.to_dict() == {
            "kind": "error",
            "error": 'Current state "Gone" not found in state machine.',
        }

    def test_initial_event_is_not_user_input(self):
        machine = build("C\n  Initial\n    -> D\n  D\n")
        assert isinstance(step(machine, "C", INITIAL_TRANSITION_EVENT), StepWarning)

    def test_no_event_bubbling(self):
        machine = build("P\n  - e\n    -> Q\n  Initial\n    -> A\n  A\nQ\n")
        assert isinstance(step(machine, "P.A", "e"), StepWarning)

    @pytest.mark.parametrize("state, event, guard", [
        ("Outer.Inner", "go", None),
        ("Outer.Inner", "missing", None),
        ("Nowhere", "go", None),
    ])
    def test_step_is_idempotent(self, state, event, guard):
        """同一模型上重复执行同一步，结果相同且模型不变"""
        machine = build(NESTED)
        before = machine.to_dict()
        first = step(machine, state, event, guard)
        second = step(machine, state, event, guard)
        assert first == second
        assert first.to_dict() == second.to_dict()
        assert machine.to_dict() == before

    def test_choices_are_idempotent(self):
        machine = build("S\n  - e [x]\n    -> T\n  - e [x]\n    -> U\nT\nU\n")
        assert step(machine, "S", "e", "x") == step(machine, "S", "e", "x")


class TestEffects:
    """效果顺序测试"""

    def test_effect_order_across_hierarchy(self):
        machine = build(NESTED)
        assert machine.initial_state == "Outer.Inner"
        outcome = step(machine, "Outer.Inner", "go")
        assert outcome.new_state == "Target.Leaf"
        assert effects_of(outcome) == [
            (EffectKind.ACTION, "Outer.Inner", "act one"),
            (EffectKind.ACTION, "Outer.Inner", "act two"),
            (EffectKind.EXIT, "Outer.Inner", "inner out"),
            (EffectKind.EXIT, "Outer", "outer out"),
            (EffectKind.TRANSITION, "Target", ""),
            (EffectKind.ENTRY, "Target", "target in"),
            (EffectKind.INITIAL, "Target.Leaf", ""),
            (EffectKind.ENTRY, "Target.Leaf", "leaf in"),
        ]
        assert outcome.target_range == Range.create(17, 2, 17, 6)

    def test_sibling_transition_keeps_parent(self):
        text = (
            "C\n"
            "  OnExit\n"
            "    / c out\n"
            "  Initial\n"
            "    -> A\n"
            "  A\n"
            "    OnExit\n"
            "      / a out\n"
            "    - next\n"
            "      -> B\n"
            "  B\n"
            "    OnEntry\n"
            "      / b in\n"
        )
        outcome = step(build(text), "C.A", "next")
        assert outcome.new_state == "C.B"
        assert effects_of(outcome) == [
            (EffectKind.EXIT, "C.A", "a out"),
            (EffectKind.TRANSITION, "C.B", ""),
            (EffectKind.ENTRY, "C.B", "b in"),
        ]

    def test_entering_composite_cascades(self):
        outcome = step(build(COMPOSITE), "X", "go")
        assert outcome.new_state == "C.D"
        assert effects_of(outcome) == [
            (EffectKind.TRANSITION, "C", ""),
            (EffectKind.ENTRY, "C", "c in"),
            (EffectKind.INITIAL, "C.D", ""),
            (EffectKind.ENTRY, "C.D", "d in"),
        ]

    def test_initial_hop_limit_stops_cascade(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fsm.engine"):
            outcome = FSMEngine(build(COMPOSITE), max_initial_hops=0).step("X", "go")
        assert outcome.new_state == "C"
        assert "stopped after 0 hops" in caplog.text

    def test_chain_ending_exactly_at_limit_is_not_reported(self, caplog):
        """链恰好在上限处结束时不记录截断警告"""
        with caplog.at_level(logging.WARNING, logger="fsm.engine"):
            outcome = FSMEngine(build(COMPOSITE), max_initial_hops=1).step("X", "go")
        assert outcome.new_state == "C.D"
        assert "stopped after" not in caplog.text

    def test_internal_action_does_not_exit(self):
        machine = build("S\n  OnEntry\n    / hi\n  OnExit\n    / bye\n  - tick\n    / count\n")
        outcome = step(machine, "S", "tick")
        assert outcome.new_state == "S"
        assert effects_of(outcome) == [(EffectKind.ACTION, "S", "count")]

    def test_effect_descriptions(self):
        outcome = step(build(COMPOSITE), "X", "go")
        assert [e.describe() for e in outcome.effects] == [
            "Transitioned to state: C",
            "OnEntry action: c in",
            "Initial transition to: C.D",
            "OnEntry action: d in",
        ]


class TestChoicesAndStart:
    """歧义选择与会话启动测试"""

    AMBIGUOUS = "S\n  - e [x]\n    -> T\n  - e [x]\n    -> U\nT\nU\n"

    def test_resolve_choice(self):
        machine = build(self.AMBIGUOUS)
        outcome = resolve_choice(machine, "S", "e", "x", "U")
        assert isinstance(outcome, TransitionTaken)
        assert outcome.new_state == "U"

    def test_resolve_choice_rejects_other_target(self):
        machine = build(self.AMBIGUOUS)
        outcome = resolve_choice(machine, "S", "e", "x", "V")
        assert isinstance(outcome, StepError)
        assert outcome.message == '"V" is not a candidate target for event "e" in state "S".'

    def test_enter_initial(self):
        machine = build("C\n  OnEntry\n    / c in\n  Initial\n    -> D\n  D\n    OnEntry\n      / d in\n")
        outcome = enter_initial(machine)
        assert outcome.new_state == "C.D"
        assert effects_of(outcome) == [
            (EffectKind.ENTRY, "C", "c in"),
            (EffectKind.INITIAL, "C.D", ""),
            (EffectKind.ENTRY, "C.D", "d in"),
        ]


class TestActionInfo:
    """动作查询测试"""

    TEXT = (
        "S\n"
        "  - e\n"
        "    / a\n"
        "    / b\n"
        "    -> T\n"
        "  - e [g]\n"
        "    / c\n"
        "  - e\n"
        "    -> T\n"
        "T\n"
        "  Initial\n"
        "    -> Inner\n"
        "  Inner\n"
        "    - poke\n"
        "      / squeak\n"
    )

    def test_unguarded_handlers_with_actions(self):
        states = parse(self.TEXT).states
        assert get_action_info(states, "S", "e") == [["a", "b"]]
        assert get_action_info(states, "S", "e", "") == [["a", "b"]]

    def test_guarded_handler(self):
        states = parse(self.TEXT).states
        assert get_action_info(states, "S", "e", "g") == [["c"]]

    def test_nested_state(self):
        states = parse(self.TEXT).states
        assert get_action_info(states, "T.Inner", "poke") == [["squeak"]]

    def test_no_match(self):
        states = parse(self.TEXT).states
        assert get_action_info(states, "S", "zzz") is None
        assert get_action_info(states, "Missing", "e") is None
