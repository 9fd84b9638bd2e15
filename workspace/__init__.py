"""
文档工作区

保存文档文本、发布诊断，并通过 StdlService 提供模型查询与调试会话。
"""
from workspace.documents import Document, DocumentStore, get_document_store
from workspace.exceptions import (
    DocumentNotFoundError,
    ModelUnavailableError,
    SessionCorruptedError,
    SessionNotFoundError,
    StdlError,
)
from workspace.service import ModelResult, StdlService, get_service

__all__ = [
    "Document",
    "DocumentStore",
    "get_document_store",
    "ModelResult",
    "StdlService",
    "get_service",
    "StdlError",
    "DocumentNotFoundError",
    "SessionNotFoundError",
    "SessionCorruptedError",
    "ModelUnavailableError",
]
