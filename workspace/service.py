"""
模型查询服务

核心职责：
1. 对外提供模型查询接口（get_model / execute_action / get_action_info 等）
2. 管理交互式调试会话的创建、执行、选择与重置
3. 将文档或会话查找失败转换为工作区异常

设计原则：
- 每次查询都从文档文本重新分词、解析、转换，不缓存语法树或状态机
- 查询接口是同步纯函数；会话接口为异步，以适配会话存储
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from fsm.engine import FSMEngine, get_action_info
from fsm.session import DebugSession
from fsm.states import FlattenedStateMachine, StepError, StepOutcome
from stdl.analysis import DocumentAnalysis, analyze
from stdl.diagnostics import Diagnostic
from stdl.mermaid import render_mermaid
from stdl.navigation import find_definition, find_references
from stdl.tokens import Position, Range
from stdl.transformer import DEFAULT_MAX_INITIAL_HOPS, transform_model

from .documents import DocumentStore
from .exceptions import ModelUnavailableError, SessionCorruptedError, SessionNotFoundError
from .storage.session_store import SessionStore

logger = logging.getLogger(__name__)

MODEL_UNAVAILABLE_MESSAGE = "State machine model is unavailable for this document."


@dataclass
class ModelResult:
    """get_model 的结果：状态机，以及构建它所依据的诊断"""
    machine: Optional[FlattenedStateMachine]
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.machine is not None

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.is_error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.machine.to_dict() if self.machine is not None else None,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class StdlService:
    """
    STDL 模型查询服务

    Args:
        documents: 文档存储
        sessions: 调试会话存储
        max_initial_hops: Initial 链的最大跳数
        session_ttl_seconds: 调试会话存活时间
    """

    def __init__(
        self,
        documents: DocumentStore,
        sessions: SessionStore,
        max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS,
        session_ttl_seconds: int = 3600,
    ) -> None:
        self.documents = documents
        self.sessions = sessions
        self.max_initial_hops = max_initial_hops
        self.session_ttl_seconds = session_ttl_seconds

    # ------------------------------------------------------------------
    # 模型查询
    # ------------------------------------------------------------------

    def get_diagnostics(self, document_id: str) -> List[Diagnostic]:
        """最近一次发布的诊断集合"""
        return self.documents.diagnostics(document_id)

    def analyze(self, document_id: str) -> DocumentAnalysis:
        return analyze(self.documents.get_text(document_id), max_initial_hops=self.max_initial_hops)

    def get_model(self, document_id: str) -> ModelResult:
        """
        构建扁平化状态机

        Returns:
            ModelResult；文档为空或 Initial 链超过上限时 machine 为 None，
            diagnostics 说明原因
        """
        analysis = self.analyze(document_id)
        machine = transform_model(analysis.states, self.max_initial_hops)
        if machine is None:
            logger.warning(
                "Model unavailable for document %s (%s diagnostics)",
                document_id,
                len(analysis.diagnostics),
                extra={"document_id": document_id},
            )
        return ModelResult(machine=machine, diagnostics=analysis.diagnostics)

    def execute_action(
        self,
        document_id: str,
        current_state: str,
        event: str,
        guard: Optional[str] = None,
    ) -> StepOutcome:
        """在文档的最新模型上执行一步"""
        machine = self.get_model(document_id).machine
        if machine is None:
            return StepError(MODEL_UNAVAILABLE_MESSAGE)
        outcome = FSMEngine(machine, self.max_initial_hops).step(current_state, event, guard)
        logger.debug("execute_action %s: %s --%s--> %s", document_id, current_state, event, outcome.kind)
        return outcome

    def resolve_choice(
        self,
        document_id: str,
        current_state: str,
        event: str,
        guard: Optional[str],
        target: str,
    ) -> StepOutcome:
        """应用调用方在歧义候选中选定的转换"""
        machine = self.get_model(document_id).machine
        if machine is None:
            return StepError(MODEL_UNAVAILABLE_MESSAGE)
        return FSMEngine(machine, self.max_initial_hops).resolve_choice(current_state, event, guard, target)

    def get_action_info(
        self,
        document_id: str,
        state_name: str,
        event: str,
        guard: Optional[str] = None,
    ) -> Optional[List[List[str]]]:
        """只读查询：某状态上匹配事件与守卫的处理器动作"""
        return get_action_info(self.analyze(document_id).states, state_name, event, guard)

    def find_definition(self, document_id: str, position: Position) -> Optional[Range]:
        return find_definition(self.documents.get_text(document_id), position)

    def find_references(self, document_id: str, position: Position) -> List[Range]:
        return find_references(self.documents.get_text(document_id), position)

    def render_diagram(self, document_id: str) -> str:
        """Mermaid stateDiagram-v2 文本"""
        return render_mermaid(self.analyze(document_id).states)

    def close_document(self, document_id: str) -> None:
        self.documents.close(document_id)

    # ------------------------------------------------------------------
    # 调试会话
    # ------------------------------------------------------------------

    async def create_session(self, document_id: str) -> DebugSession:
        """为文档创建调试会话并进入初始状态"""
        machine = self._require_model(document_id)
        session = DebugSession(
            document_id=document_id,
            session_id=uuid.uuid4().hex,
            max_initial_hops=self.max_initial_hops,
        )
        session.start(machine)
        await self._save(session)
        logger.info(
            "Created debug session %s for %s in state %s",
            session.session_id,
            document_id,
            session.current_state,
            extra={"document_id": document_id, "session_id": session.session_id},
        )
        return session

    async def get_session(self, session_id: str) -> DebugSession:
        await self.sessions.cleanup_expired()
        data = await self.sessions.get(session_id)
        if data is None:
            raise SessionNotFoundError(session_id)
        return DebugSession.from_dict(data)

    async def send_event(
        self,
        session_id: str,
        event: str,
        guard: Optional[str] = None,
    ) -> Tuple[DebugSession, StepOutcome]:
        """
        向会话发送事件

        Raises:
            SessionNotFoundError: 会话不存在或已过期
            SessionCorruptedError: 会话已损坏，需要先 reset
            DocumentNotFoundError: 会话所属文档已关闭
            ModelUnavailableError: 文档无法构建状态机
        """
        session = await self._load_runnable(session_id)
        machine = self._require_model(session.document_id)
        outcome = session.execute(machine, event, guard)
        await self._save(session)
        return session, outcome

    async def choose(self, session_id: str, target: str) -> Tuple[DebugSession, StepOutcome]:
        """为会话中待选择的歧义事件选定目标"""
        session = await self._load_runnable(session_id)
        machine = self._require_model(session.document_id)
        outcome = session.resolve_choice(machine, target)
        await self._save(session)
        return session, outcome

    async def reset_session(self, session_id: str) -> DebugSession:
        session = await self.get_session(session_id)
        session.reset(self._require_model(session.document_id))
        await self._save(session)
        return session

    async def clear_session_log(self, session_id: str) -> DebugSession:
        """清空会话日志，损坏的会话也可以清空"""
        session = await self.get_session(session_id)
        cleared = session.clear_log()
        await self._save(session)
        logger.debug("Cleared %s log entries of session %s", cleared, session_id)
        return session

    async def close_session(self, session_id: str) -> None:
        await self.get_session(session_id)
        await self.sessions.delete(session_id)
        logger.info("Closed debug session %s", session_id)

    async def close_sessions_for(self, document_id: str) -> int:
        """删除某文档的全部调试会话"""
        session_ids = await self.sessions.list_ids(document_id)
        for session_id in session_ids:
            await self.sessions.delete(session_id)
        return len(session_ids)

    async def _load_runnable(self, session_id: str) -> DebugSession:
        session = await self.get_session(session_id)
        if session.corrupted:
            raise SessionCorruptedError(session_id, session.current_state)
        return session

    def _require_model(self, document_id: str) -> FlattenedStateMachine:
        result = self.get_model(document_id)
        if result.machine is None:
            raise ModelUnavailableError(document_id, result.error_count)
        return result.machine

    async def _save(self, session: DebugSession) -> None:
        await self.sessions.set(session.session_id, session.to_dict(), self.session_ttl_seconds)


_service_instance: Optional[StdlService] = None


def get_service() -> StdlService:
    """获取全局服务实例"""
    global _service_instance

    if _service_instance is None:
        from config.settings import settings
        from .documents import get_document_store
        from .storage.session_store import get_session_store

        _service_instance = StdlService(
            documents=get_document_store(),
            sessions=get_session_store(),
            max_initial_hops=settings.MAX_INITIAL_HOPS,
            session_ttl_seconds=settings.SESSION_TTL_SECONDS,
        )
    return _service_instance
