"""
全局配置模块

所有配置都可以通过环境变量或项目根目录下的 .env 覆盖，例如:
    MAX_NUMBER_OF_PROBLEMS=50
    API_AUTH_ENABLED=true
    API_KEYS='["key-1", "key-2"]'
"""
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """STDL 语言服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DEBUG: bool = Field(default=False, description="调试模式（API 500 响应中返回异常信息）")

    # 文档诊断
    MAX_NUMBER_OF_PROBLEMS: int = Field(default=100, ge=1, description="每篇文档最多发布的诊断条数")

    # 状态机构建与执行
    MAX_INITIAL_HOPS: int = Field(default=20, ge=1, description="Initial 自动转换链的最大跳数")

    # 调试会话
    SESSION_TTL_SECONDS: int = Field(default=3600, ge=1, description="会话空闲多久后过期(秒)")

    # HTTP 服务
    API_HOST: str = Field(default="0.0.0.0", description="API 主机")
    API_PORT: int = Field(default=8000, description="API 端口")
    CORS_ALLOW_ORIGINS: List[str] = Field(default=["*"], description="CORS 允许来源")
    API_AUTH_ENABLED: bool = Field(default=False, description="是否校验 X-API-Key")
    API_KEYS: List[str] = Field(default=[], description="允许的 API Keys")

    # 日志
    LOG_LEVEL: str = Field(default="INFO", description="日志级别")
    LOG_FORMAT: Literal["text", "json"] = Field(default="text", description="日志格式")
    LOG_FILE: Optional[Path] = Field(default=None, description="日志文件路径")

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()


# 全局配置实例
settings = Settings()
