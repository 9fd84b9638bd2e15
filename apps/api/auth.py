"""
API 认证模块

STDL 服务只支持请求头 X-API-Key 认证。未启用认证时所有请求以 anonymous 身份通过；
启用后调用方身份记为 key:<前 8 位>，完整密钥不会出现在日志或响应里。
"""
import logging
import secrets
from typing import Iterable, Optional

from fastapi import HTTPException, Security
from fastapi.security import APIKeyHeader

from config.settings import settings

logger = logging.getLogger(__name__)

ANONYMOUS = "anonymous"
KEY_PREFIX_LENGTH = 8

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def caller_id(api_key: str) -> str:
    return f"key:{api_key[:KEY_PREFIX_LENGTH]}"


def is_allowed_key(api_key: str, allowed: Iterable[str]) -> bool:
    """逐个做常量时间比较"""
    return any(secrets.compare_digest(api_key, candidate) for candidate in allowed)


async def get_current_user(api_key: Optional[str] = Security(api_key_header)) -> str:
    """
    校验 API Key 并返回调用方身份

    Raises:
        HTTPException: 401 缺少密钥，403 密钥无效
    """
    if not settings.API_AUTH_ENABLED:
        return ANONYMOUS

    if not api_key:
        logger.warning("API authentication failed: missing API key")
        raise HTTPException(status_code=401, detail="Missing API key")

    caller = caller_id(api_key)
    if not is_allowed_key(api_key, settings.API_KEYS):
        logger.warning("API authentication failed: invalid API key %s", caller)
        raise HTTPException(status_code=403, detail="Invalid API key")

    logger.debug("API authentication succeeded: %s", caller)
    return caller
