"""
FastAPI 入口
"""
# 在最开始加载环境变量，确保 .env 中的配置生效
from dotenv import load_dotenv
load_dotenv()

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from apps.api.auth import get_current_user
from config.logging_config import setup_logging
from config.settings import settings
from fsm.session import DebugSession
from stdl.tokens import Position
from workspace.exceptions import (
    DocumentNotFoundError,
    ModelUnavailableError,
    SessionCorruptedError,
    SessionNotFoundError,
    StdlError,
)
from workspace.service import StdlService, get_service

# 初始化日志配置
setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(_: FastAPI):
    await get_service().sessions.init()
    yield


app = FastAPI(
    title="STDL Language Service",
    description="STDL 状态机语言的诊断、模型查询与交互式调试服务",
    version=VERSION,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_context(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        status_code = response.status_code if response else 500
        logger.info(
            "request_id=%s method=%s path=%s status=%s",
            request_id,
            request.method,
            request.url.path,
            status_code,
            extra={"request_id": request_id},
        )


# 工作区异常到 HTTP 状态码
ERROR_STATUS_CODES = {
    DocumentNotFoundError: 404,
    SessionNotFoundError: 404,
    SessionCorruptedError: 409,
    ModelUnavailableError: 422,
}


@app.exception_handler(StdlError)
async def stdl_exception_handler(request: Request, exc: StdlError):
    status_code = ERROR_STATUS_CODES.get(type(exc), 400)
    logger.warning("Request failed path=%s status=%s: %s", request.url.path, status_code, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error path=%s", request.url.path)
    detail = str(exc) if settings.DEBUG else "Internal Server Error"
    return JSONResponse(status_code=500, content={"detail": detail})


# 请求/响应模型
class DocumentRequest(BaseModel):
    """打开或替换文档"""
    text: str = Field(..., description="文档全文")


class PositionModel(BaseModel):
    """光标位置（从 0 开始）"""
    line: int = Field(..., ge=0)
    character: int = Field(..., ge=0)

    def to_position(self) -> Position:
        return Position(self.line, self.character)


class ExecuteRequest(BaseModel):
    """单步执行请求"""
    current_state: str = Field(..., description="当前状态限定名")
    event: str = Field(..., description="事件名")
    guard: Optional[str] = Field(None, description="守卫文本，与处理器上的守卫精确比较")


class ResolveChoiceRequest(ExecuteRequest):
    """歧义选择请求"""
    target: str = Field(..., description="选定的目标状态限定名")


class ActionInfoRequest(BaseModel):
    """动作查询请求"""
    state: str = Field(..., description="状态限定名")
    event: str = Field(..., description="事件名")
    guard: Optional[str] = Field(None, description="守卫文本")


class DiagnosticsResponse(BaseModel):
    document_id: str
    diagnostics: List[Dict[str, Any]]


class CreateSessionRequest(BaseModel):
    """创建调试会话"""
    document_id: str = Field(..., description="要调试的文档")


class SessionEventRequest(BaseModel):
    """向会话发送事件"""
    event: str = Field(..., description="事件名")
    guard: Optional[str] = Field(None, description="守卫文本")


class SessionChoiceRequest(BaseModel):
    """为待选择的歧义事件选定目标"""
    target: str = Field(..., description="选定的目标状态限定名")


def session_payload(session: DebugSession, outcome=None) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"session": session.to_dict()}
    if outcome is not None:
        payload["outcome"] = outcome.to_dict()
    return payload


@app.get("/")
async def root():
    """健康检查（公开端点）"""
    return {
        "service": "STDL Language Service",
        "status": "running",
        "version": VERSION,
    }


@app.get("/health")
async def health_check():
    """健康检查端点（公开）"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": VERSION,
    }


# ============================================================
# 文档与模型查询
# ============================================================

@app.put("/documents/{document_id}", response_model=DiagnosticsResponse)
async def open_document(
    document_id: str,
    request: DocumentRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    """打开或替换文档，返回全量诊断"""
    diagnostics = service.documents.open(document_id, request.text)
    return DiagnosticsResponse(document_id=document_id, diagnostics=[d.to_dict() for d in diagnostics])


@app.get("/documents/{document_id}/diagnostics", response_model=DiagnosticsResponse)
async def get_diagnostics(
    document_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    diagnostics = service.get_diagnostics(document_id)
    return DiagnosticsResponse(document_id=document_id, diagnostics=[d.to_dict() for d in diagnostics])


@app.delete("/documents/{document_id}")
async def close_document(
    document_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    """关闭文档，并结束它的全部调试会话"""
    service.close_document(document_id)
    closed = await service.close_sessions_for(document_id)
    return {"status": "closed", "document_id": document_id, "sessions_closed": closed}


@app.get("/documents/{document_id}/model")
async def get_model(
    document_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    """扁平化状态机；无法构建时 model 为 null，diagnostics 给出原因"""
    return {"document_id": document_id, **service.get_model(document_id).to_dict()}


@app.post("/documents/{document_id}/execute")
async def execute_action(
    document_id: str,
    request: ExecuteRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    """
    单步执行

    返回 newState / choices / error / warning 四种结果之一
    """
    outcome = service.execute_action(document_id, request.current_state, request.event, request.guard)
    return outcome.to_dict()


@app.post("/documents/{document_id}/resolve-choice")
async def resolve_choice(
    document_id: str,
    request: ResolveChoiceRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    outcome = service.resolve_choice(
        document_id, request.current_state, request.event, request.guard, request.target,
    )
    return outcome.to_dict()


@app.post("/documents/{document_id}/action-info")
async def get_action_info(
    document_id: str,
    request: ActionInfoRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    """只读预览：会触发的动作"""
    handlers = service.get_action_info(document_id, request.state, request.event, request.guard)
    return {"actions": [{"actions": actions} for actions in handlers] if handlers else None}


@app.post("/documents/{document_id}/definition")
async def find_definition(
    document_id: str,
    request: PositionModel,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    location = service.find_definition(document_id, request.to_position())
    return {"document_id": document_id, "range": location.to_dict() if location else None}


@app.post("/documents/{document_id}/references")
async def find_references(
    document_id: str,
    request: PositionModel,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    ranges = service.find_references(document_id, request.to_position())
    return {"document_id": document_id, "ranges": [r.to_dict() for r in ranges]}


@app.get("/documents/{document_id}/diagram", response_class=PlainTextResponse)
async def get_diagram(
    document_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    """Mermaid stateDiagram-v2 文本"""
    return service.render_diagram(document_id)


# ============================================================
# 调试会话
# ============================================================

@app.post("/sessions")
async def create_session(
    request: CreateSessionRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    session = await service.create_session(request.document_id)
    return session_payload(session)


@app.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    session = await service.get_session(session_id)
    return session_payload(session)


@app.post("/sessions/{session_id}/events")
async def send_event(
    session_id: str,
    request: SessionEventRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    session, outcome = await service.send_event(session_id, request.event, request.guard)
    return session_payload(session, outcome)


@app.post("/sessions/{session_id}/choices")
async def choose(
    session_id: str,
    request: SessionChoiceRequest,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    session, outcome = await service.choose(session_id, request.target)
    return session_payload(session, outcome)


@app.post("/sessions/{session_id}/reset")
async def reset_session(
    session_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    session = await service.reset_session(session_id)
    return session_payload(session)


@app.post("/sessions/{session_id}/clear-log")
async def clear_session_log(
    session_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    session = await service.clear_session_log(session_id)
    return session_payload(session)


@app.delete("/sessions/{session_id}")
async def close_session(
    session_id: str,
    _user: str = Depends(get_current_user),
    service: StdlService = Depends(get_service),
):
    await service.close_session(session_id)
    return {"status": "closed", "session_id": session_id}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
    )
