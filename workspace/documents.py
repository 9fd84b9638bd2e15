"""
文档工作区

核心职责：
1. 按文档标识保存最新文本（唯一被缓存的内容）
2. 每次打开或修改文档时重新分析，并向监听者发布完整的诊断集合
3. 按 MAX_NUMBER_OF_PROBLEMS 截断发布的诊断

设计原则：
- 诊断是全量替换，不做增量
- 语法树与状态机不缓存，查询时从文本重新构建
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

from stdl.analysis import analyze
from stdl.diagnostics import Diagnostic
from stdl.naming import DEFAULT_MAX_INITIAL_HOPS

from .exceptions import DocumentNotFoundError

logger = logging.getLogger(__name__)

DiagnosticsListener = Callable[[str, List[Diagnostic]], None]


@dataclass
class Document:
    """工作区中的一篇文档"""
    document_id: str
    text: str
    version: int = 1
    updated_at: datetime = field(default_factory=datetime.now)
    diagnostics: List[Diagnostic] = field(default_factory=list)


class DocumentStore:
    """
    文档存储

    Args:
        max_problems: 每篇文档最多发布的诊断条数
        max_initial_hops: Initial 链的最大跳数
    """

    def __init__(self, max_problems: int = 100, max_initial_hops: int = DEFAULT_MAX_INITIAL_HOPS) -> None:
        self.max_problems = max_problems
        self.max_initial_hops = max_initial_hops
        self._documents: Dict[str, Document] = {}
        self._listeners: List[DiagnosticsListener] = []

    def add_listener(self, listener: DiagnosticsListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: DiagnosticsListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def open(self, document_id: str, text: str) -> List[Diagnostic]:
        """打开文档（已存在时等同于 update）"""
        if document_id in self._documents:
            return self.update(document_id, text)

        document = Document(document_id=document_id, text=text)
        self._documents[document_id] = document
        logger.debug("Opened document %s", document_id)
        return self._validate(document)

    def update(self, document_id: str, text: str) -> List[Diagnostic]:
        """替换文档全文并重新发布诊断"""
        document = self.get(document_id)
        document.text = text
        document.version += 1
        document.updated_at = datetime.now()
        return self._validate(document)

    def close(self, document_id: str) -> None:
        """关闭文档并发布空诊断集合"""
        if self._documents.pop(document_id, None) is None:
            raise DocumentNotFoundError(document_id)
        logger.debug("Closed document %s", document_id)
        self._publish(document_id, [])

    def get(self, document_id: str) -> Document:
        document = self._documents.get(document_id)
        if document is None:
            raise DocumentNotFoundError(document_id)
        return document

    def get_text(self, document_id: str) -> str:
        return self.get(document_id).text

    def diagnostics(self, document_id: str) -> List[Diagnostic]:
        """最近一次发布的诊断"""
        return list(self.get(document_id).diagnostics)

    def document_ids(self) -> List[str]:
        return list(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def _validate(self, document: Document) -> List[Diagnostic]:
        analysis = analyze(document.text, self.max_problems, self.max_initial_hops)
        document.diagnostics = analysis.diagnostics
        logger.debug(
            "Validated document %s (version %s): %s diagnostics",
            document.document_id,
            document.version,
            len(analysis.diagnostics),
        )
        self._publish(document.document_id, analysis.diagnostics)
        return list(analysis.diagnostics)

    def _publish(self, document_id: str, diagnostics: List[Diagnostic]) -> None:
        for listener in list(self._listeners):
            listener(document_id, list(diagnostics))


_store_instance: Optional[DocumentStore] = None


def get_document_store() -> DocumentStore:
    """获取全局文档存储实例"""
    global _store_instance

    if _store_instance is None:
        from config.settings import settings

        _store_instance = DocumentStore(
            max_problems=settings.MAX_NUMBER_OF_PROBLEMS,
            max_initial_hops=settings.MAX_INITIAL_HOPS,
        )
    return _store_instance
