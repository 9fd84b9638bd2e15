"""会话存储模块"""
from workspace.storage.session_store import SessionStore, MemorySessionStore, get_session_store

__all__ = ["SessionStore", "MemorySessionStore", "get_session_store"]
