"""
日志配置模块

命令行调试器输出文本日志到 stderr；API 服务在生产环境可切换为 JSON。
文档与会话上下文通过 extra 传入，例如:
    logger.info("Created debug session %s", sid, extra={"document_id": doc, "session_id": sid})
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Dict, Optional

from config.settings import settings

# 日志记录上可选携带的上下文字段
CONTEXT_FIELDS = ("request_id", "document_id", "session_id")

# 第三方库默认只保留警告以上
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "multipart")


def record_context(record: logging.LogRecord) -> Dict[str, str]:
    return {
        name: str(getattr(record, name))
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """JSON 格式日志，每行一个对象"""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": record.lineno,
        }
        log_obj.update(record_context(record))

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """文本格式日志，存在上下文时追加在行尾"""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = record_context(record)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
    log_file: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """
    配置根日志

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)，默认取 LOG_LEVEL
        format_type: text 或 json，默认取 LOG_FORMAT
        log_file: 额外写入的日志文件，默认取 LOG_FILE
        stream: 控制台输出流，默认 stdout
    """
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    formatter = JSONFormatter() if (format_type or settings.LOG_FORMAT) == "json" else TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    file_path = log_file or settings.LOG_FILE
    if file_path:
        file_handler = logging.FileHandler(str(file_path), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
