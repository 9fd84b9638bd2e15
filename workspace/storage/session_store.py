"""
调试会话存储

会话以 DebugSession.to_dict() 的字典形式保存，每次写入刷新存活时间，
空闲超过 TTL 的会话在下一次读取或清理时删除。进程重启后不保留。
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple


@dataclass
class SessionRecord:
    """一条会话记录，document_id 冗余保存以便按文档查找"""
    state: Dict[str, Any]
    document_id: Optional[str]
    updated_at: datetime
    ttl_seconds: int

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        return now - self.updated_at > timedelta(seconds=self.ttl_seconds)


class SessionStore(ABC):
    """会话存储抽象类"""

    async def init(self) -> None:
        """初始化存储后端（可选）"""
        return None

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    async def set(self, session_id: str, state: Dict[str, Any], ttl_seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def cleanup_expired(self) -> int:
        """删除过期会话，返回删除条数"""
        raise NotImplementedError

    @abstractmethod
    async def list_ids(self, document_id: Optional[str] = None) -> List[str]:
        """未过期的会话 ID，可按所调试的文档过滤"""
        raise NotImplementedError


class MemorySessionStore(SessionStore):
    """进程内会话存储"""

    def __init__(self) -> None:
        self._records: Dict[str, SessionRecord] = {}

    def _partition(self, now: datetime) -> Iterator[Tuple[str, SessionRecord, bool]]:
        for session_id, record in list(self._records.items()):
            yield session_id, record, record.is_expired(now)

    async def get(self, session_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(session_id)
        if record is None:
            return None
        if record.is_expired():
            del self._records[session_id]
            return None
        return record.state

    async def set(self, session_id: str, state: Dict[str, Any], ttl_seconds: int) -> None:
        self._records[session_id] = SessionRecord(
            state=state,
            document_id=state.get("document_id"),
            updated_at=datetime.now(),
            ttl_seconds=ttl_seconds,
        )

    async def delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    async def cleanup_expired(self) -> int:
        expired = [sid for sid, _, is_expired in self._partition(datetime.now()) if is_expired]
        for session_id in expired:
            del self._records[session_id]
        return len(expired)

    async def list_ids(self, document_id: Optional[str] = None) -> List[str]:
        return [
            session_id
            for session_id, record, is_expired in self._partition(datetime.now())
            if not is_expired and (document_id is None or record.document_id == document_id)
        ]


_store_instance: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """获取全局会话存储实例"""
    global _store_instance

    if _store_instance is None:
        _store_instance = MemorySessionStore()
    return _store_instance
