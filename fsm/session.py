"""
调试会话

会话是唯一长期存在的执行状态：当前状态、待选择的歧义事件以及带序号的会话日志。
状态机本身不保存在会话里，每次操作由调用方传入最新构建的模型，
因此文档被编辑后可能出现当前状态不存在的情况，此时会话标记为损坏，直到 reset。
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .engine import DEFAULT_MAX_INITIAL_HOPS, FSMEngine
from .states import (
    ChoiceRequired,
    Effect,
    EffectKind,
    FlattenedStateMachine,
    StepError,
    StepOutcome,
    StepWarning,
    TransitionTaken,
)

logger = logging.getLogger(__name__)


class LogType(str, Enum):
    """会话日志类型"""
    INFO = "info"
    STATE = "state"
    EVENT = "event"
    ACTION = "action"
    ENTRY = "entry"
    EXIT = "exit"
    ERROR = "error"


_EFFECT_LOG_TYPES = {
    EffectKind.ACTION: LogType.ACTION,
    EffectKind.EXIT: LogType.EXIT,
    EffectKind.ENTRY: LogType.ENTRY,
    EffectKind.TRANSITION: LogType.STATE,
    EffectKind.INITIAL: LogType.STATE,
}


@dataclass
class LogEntry:
    """会话日志条目，同一秒内的先后由 sequence 区分"""
    timestamp: str
    type: LogType
    message: str
    sequence: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "type": self.type.value,
            "message": self.message,
            "sequence": self.sequence,
        }


@dataclass
class TransitionRecord:
    """状态转换记录"""
    from_state: str
    to_state: str
    event: str
    guard: str = ""
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_state": self.from_state,
            "to_state": self.to_state,
            "event": self.event,
            "guard": self.guard,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class PendingChoice:
    """等待调用方选择的歧义事件"""
    event: str
    guard: str
    targets: List[str]


class DebugSession:
    """
    调试会话

    Args:
        document_id: 会话所调试的文档
        session_id: 会话标识
        max_initial_hops: 执行期 Initial 链的最大跳数
    """

    def __init__(self, document_id: str, session_id: str = "", max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS):
        self.document_id = document_id
        self.session_id = session_id
        self.max_initial_hops = max_initial_hops
        self.current_state: Optional[str] = None
        self.corrupted = False
        self.pending_choice: Optional[PendingChoice] = None
        self.log: List[LogEntry] = []
        self.history: List[TransitionRecord] = []

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def start(self, machine: Optional[FlattenedStateMachine]) -> Optional[TransitionTaken]:
        """进入初始状态并执行初始路径上的 OnEntry 动作"""
        self.add_log(LogType.INFO, "Starting debug session")
        if machine is None or not machine.states:
            self.current_state = None
            self.add_log(LogType.ERROR, "Failed to parse state machine or it is empty")
            return None

        outcome = FSMEngine(machine, self.max_initial_hops).enter_initial()
        self.current_state = outcome.new_state
        self.corrupted = False
        self.pending_choice = None
        self.add_log(LogType.INFO, f"Debugger started with initial state: {self.current_state}")
        self.add_log(LogType.STATE, f"Entered state: {machine.initial_path[0] if machine.initial_path else self.current_state}")
        self._log_effects(outcome.effects)
        return outcome

    def reset(self, machine: Optional[FlattenedStateMachine]) -> Optional[TransitionTaken]:
        """回到初始状态，清除损坏标记与待选择事件"""
        self.add_log(LogType.INFO, "Session reset")
        self.corrupted = False
        self.pending_choice = None
        self.history = []
        return self.start(machine)

    # ------------------------------------------------------------------
    # 执行
    # ------------------------------------------------------------------

    def execute(self, machine: FlattenedStateMachine, event: str, guard: Optional[str] = None) -> StepOutcome:
        """
        在当前状态上触发事件

        Returns:
            引擎的执行结果；会话已损坏或未启动时返回 StepError
        """
        guard_text = guard or ""
        self.add_log(LogType.EVENT, f"Event triggered: {event}{f' [{guard_text}]' if guard_text else ''}")

        blocked = self._check_runnable()
        if blocked is not None:
            return blocked

        outcome = FSMEngine(machine, self.max_initial_hops).step(self.current_state, event, guard)
        if isinstance(outcome, ChoiceRequired):
            self.pending_choice = PendingChoice(
                event=event,
                guard=guard_text,
                targets=[choice.target for choice in outcome.choices],
            )
            self.add_log(
                LogType.INFO,
                f"Event '{event}' matches {len(outcome.choices)} transitions, waiting for a choice",
            )
            return outcome

        self.pending_choice = None
        return self._apply_outcome(machine, outcome, event, guard_text)

    def resolve_choice(self, machine: FlattenedStateMachine, target: str) -> StepOutcome:
        """应用调用方为最近一次歧义事件选定的目标"""
        blocked = self._check_runnable()
        if blocked is not None:
            return blocked

        pending = self.pending_choice
        if pending is None:
            message = "No pending choice to resolve"
            self.add_log(LogType.ERROR, message)
            return StepError(message)

        outcome = FSMEngine(machine, self.max_initial_hops).resolve_choice(
            self.current_state, pending.event, pending.guard, target,
        )
        if isinstance(outcome, StepError) and self.current_state in machine:
            # 选错目标不影响会话，可以再次选择
            self.add_log(LogType.ERROR, outcome.message)
            return outcome

        self.pending_choice = None
        self.add_log(LogType.INFO, f"Choice resolved: {pending.event} -> {target}")
        return self._apply_outcome(machine, outcome, pending.event, pending.guard)

    def _check_runnable(self) -> Optional[StepError]:
        if self.corrupted:
            message = "Session is corrupted, reset required"
        elif self.current_state is None:
            message = "Session has not been started"
        else:
            return None
        self.add_log(LogType.ERROR, message)
        return StepError(message)

    def _apply_outcome(
        self,
        machine: FlattenedStateMachine,
        outcome: StepOutcome,
        event: str,
        guard: str,
    ) -> StepOutcome:
        if isinstance(outcome, TransitionTaken):
            previous = self.current_state
            self._log_effects(outcome.effects)
            self.current_state = outcome.new_state
            if outcome.new_state != previous:
                self.history.append(TransitionRecord(
                    from_state=previous, to_state=outcome.new_state, event=event, guard=guard,
                ))
            elif not outcome.effects:
                self.add_log(LogType.INFO, f"Event '{event}' resulted in no state change")
        elif isinstance(outcome, StepWarning):
            self.add_log(LogType.INFO, outcome.message)
        elif isinstance(outcome, StepError):
            self.add_log(LogType.ERROR, outcome.message)
            if self.current_state not in machine:
                logger.warning(
                    "Session %s corrupted: state %r no longer exists in %s",
                    self.session_id,
                    self.current_state,
                    self.document_id,
                )
                self.corrupted = True
        return outcome

    # ------------------------------------------------------------------
    # 日志
    # ------------------------------------------------------------------

    def add_log(self, log_type: LogType, message: str) -> LogEntry:
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
            type=log_type,
            message=message,
            sequence=len(self.log),
        )
        self.log.append(entry)
        return entry

    def clear_log(self) -> int:
        """清空会话日志，返回清除的条数；状态与历史不受影响"""
        cleared = len(self.log)
        self.log = []
        return cleared

    def _log_effects(self, effects: List[Effect]) -> None:
        for effect in effects:
            self.add_log(_EFFECT_LOG_TYPES[effect.kind], effect.describe())

    # ------------------------------------------------------------------
    # 序列化
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "document_id": self.document_id,
            "max_initial_hops": self.max_initial_hops,
            "current_state": self.current_state,
            "corrupted": self.corrupted,
            "pending_choice": (
                {
                    "event": self.pending_choice.event,
                    "guard": self.pending_choice.guard,
                    "targets": list(self.pending_choice.targets),
                }
                if self.pending_choice
                else None
            ),
            "log": [entry.to_dict() for entry in self.log],
            "history": [record.to_dict() for record in self.history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DebugSession":
        session = cls(
            document_id=data["document_id"],
            session_id=data.get("session_id", ""),
            max_initial_hops=data.get("max_initial_hops", DEFAULT_MAX_INITIAL_HOPS),
        )
        session.current_state = data.get("current_state")
        session.corrupted = data.get("corrupted", False)
        pending = data.get("pending_choice")
        if pending:
            session.pending_choice = PendingChoice(
                event=pending["event"], guard=pending["guard"], targets=list(pending["targets"]),
            )
        session.log = [
            LogEntry(
                timestamp=entry["timestamp"],
                type=LogType(entry["type"]),
                message=entry["message"],
                sequence=entry["sequence"],
            )
            for entry in data.get("log", [])
        ]
        session.history = [
            TransitionRecord(
                from_state=record["from_state"],
                to_state=record["to_state"],
                event=record["event"],
                guard=record.get("guard", ""),
                timestamp=datetime.fromisoformat(record["timestamp"]),
            )
            for record in data.get("history", [])
        ]
        return session

    def __repr__(self) -> str:
        return f"DebugSession(id={self.session_id}, document={self.document_id}, state={self.current_state})"
