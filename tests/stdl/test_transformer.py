"""
模型转换器测试

测试覆盖:
- 限定名与转换表
- 目标解析优先级
- Initial 链（跳数上限）
- 内部处理器与未解析目标
"""
from fsm.states import INITIAL_TRANSITION_EVENT
from stdl.parser import parse
from stdl.transformer import transform_model


def build(text, **kwargs):
    return transform_model(parse(text).states, **kwargs)


class TestFlattening:
    """展开测试"""

    def test_simple_machine(self):
        machine = build("Idle\n  - go\n    -> Busy\nBusy\n")
        assert machine.initial_state == "Idle"
        assert machine.initial_path == ["Idle"]
        assert list(machine.states) == ["Idle", "Busy"]
        transition = machine.get("Idle").transitions["go"][0]
        assert transition.target == "Busy"
        assert transition.guard == ""
        assert transition.action is None

    def test_actions_are_joined(self):
        machine = build("A\n  - e [ok]\n    / one\n    / two\n    -> B\nB\n")
        transition = machine.get("A").transitions["e"][0]
        assert transition.guard == "ok"
        assert transition.action == "one, two"
        assert transition.actions == ["one", "two"]

    def test_internal_handler_becomes_self_transition(self):
        machine = build("S\n  - tick\n    / count\n")
        transition = machine.get("S").transitions["tick"][0]
        assert transition.target == "S"
        assert transition.action == "count"

    def test_entry_and_exit_actions(self):
        machine = build("S\n  OnEntry\n    / hello\n  OnExit\n    / bye\n")
        state = machine.get("S")
        assert state.on_entry == ["hello"]
        assert state.on_exit == ["bye"]

    def test_duplicates_keep_rest_of_model(self):
        """重复定义只影响重名的那一个状态，其余状态照常展开"""
        machine = build("A\n  - e\n    -> B\n  X\nA\n  - e\n    -> A\n  Y\nB\n")
        assert list(machine.states) == ["A", "A.X", "A.Y", "B"]
        assert machine.initial_state == "A"
        assert [t.target for t in machine.get("A").transitions["e"]] == ["B"]

    def test_empty_document(self):
        assert build("") is None
        assert build("// only a comment\n") is None

    def test_to_dict(self):
        data = build("C\n  Initial\n    -> D\n  D\n").to_dict()
        assert data["initialState"] == "C.D"
        assert data["initialPath"] == ["C", "C.D"]
        assert data["states"]["C"]["transitions"][INITIAL_TRANSITION_EVENT][0]["target"] == "C.D"


class TestTargetResolution:
    """目标解析测试"""

    def test_substate_preferred_over_sibling(self):
        text = (
            "P\n"
            "  Initial\n"
            "    -> S\n"
            "  S\n"
            "    - go\n"
            "      -> T\n"
            "    T\n"
            "  T\n"
        )
        machine = build(text)
        assert machine.get("P.S").transitions["go"][0].target == "P.S.T"

    def test_sibling_preferred_over_top_level(self):
        text = "A\n  Initial\n    -> X\n  X\n    - e\n      -> Y\n  Y\nY\n"
        machine = build(text)
        assert machine.get("A.X").transitions["e"][0].target == "A.Y"

    def test_unresolved_target_kept_literally(self):
        machine = build("S\n  - e\n    -> Nowhere\n")
        assert machine.get("S").transitions["e"][0].target == "Nowhere"


class TestInitialChain:
    """Initial 链测试"""

    CHAIN = "A\n  Initial\n    -> B\n  B\n    Initial\n      -> C\n    C\n"

    def test_initial_state_follows_chain(self):
        machine = build(self.CHAIN)
        assert machine.initial_state == "A.B.C"
        assert machine.initial_path == ["A", "A.B", "A.B.C"]

    def test_hop_limit(self):
        assert build(self.CHAIN, max_initial_hops=1) is None
        assert build(self.CHAIN, max_initial_hops=2).initial_state == "A.B.C"

    def test_invalid_initial_target_not_added(self):
        machine = build("S\n  Initial\n    -> Z\n  A\n")
        assert INITIAL_TRANSITION_EVENT not in machine.get("S").transitions
        assert machine.initial_state == "S"
