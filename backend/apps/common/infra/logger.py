"""
日志封装：提供统一的日志记录器

- 输出到 settings.LOG_PATH/system.log，按日期自动轮转，保留 30 天
- 支持 PLAIN（默认，易于 grep）与 JSON（LOG_FORMAT=json，便于采集）两种格式
- 自动注入请求上下文（request_id、user_id、username、ip、path）
- DEBUG=true 时额外输出到控制台
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from django.conf import settings as django_settings

_configured = False

# LogRecord 自带属性，extra 中的同名字段不视为业务字段
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _record_fields(record: logging.LogRecord) -> dict:
    """提取通过 extra 注入的业务字段"""
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


class ArenaJSONFormatter(logging.Formatter):
    """
    JSON 格式化器

    输出示例：
    {"timestamp": "2026-03-01 10:00:00", "level": "INFO", "logger": "apps.contests.services",
     "message": "创建比赛", "contest": "spring-cup", "username": "mentor", "request_id": "9f1c..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "username", "user_id", "ip", "path"):
            if ctx.get(key) not in (None, ""):
                log_dict[key] = ctx[key]
        log_dict.update(_record_fields(record))
        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_dict, ensure_ascii=False, default=str)


class ArenaPlainFormatter(logging.Formatter):
    """
    纯文本格式化器

    格式：{timestamp} {level} {logger} {message} {k=v ...} [{username}|{user_id}|{ip}|{path}|{request_id}]
    """

    def format(self, record: logging.LogRecord) -> str:
        from apps.common.utils.request_context import get_request_context

        ctx = get_request_context()
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        fields = _record_fields(record)
        field_text = " ".join(f"{k}={v}" for k, v in fields.items())
        context_info = "[{}|{}|{}|{}|{}]".format(
            ctx.get("username") or "-",
            ctx.get("user_id") if ctx.get("user_id") is not None else "-",
            ctx.get("ip") or "-",
            ctx.get("path") or "-",
            ctx.get("request_id") or "-",
        )
        parts = [timestamp, record.levelname, record.name, record.getMessage()]
        if field_text:
            parts.append(field_text)
        parts.append(context_info)
        log_line = " ".join(parts)
        if record.exc_info:
            log_line += "\n" + self.formatException(record.exc_info)
        return log_line


def get_log_path_from_settings() -> str:
    """基于 settings.LOG_PATH 生成日志文件路径，目录不存在时自动创建"""
    log_dir = Path(getattr(django_settings, "LOG_PATH", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return str(log_dir / "system.log")


class SafeTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """轮转失败（文件被占用）时跳过本次轮转，避免中断日志写入"""

    def doRollover(self):
        try:
            super().doRollover()
        except PermissionError:
            pass


def configure_logging(force: bool = False, *, level: Optional[int] = None, log_file_path: Optional[str] = None) -> None:
    """
    配置日志系统（进程内只配置一次，force=True 可重新配置）
    """
    global _configured
    if _configured and not force:
        return

    log_level = level if level is not None else getattr(logging, str(
        getattr(django_settings, "LOG_LEVEL", "INFO")).upper(), logging.INFO)
    log_file_path = log_file_path or get_log_path_from_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in list(root_logger.handlers):
        handler.close()
    root_logger.handlers.clear()

    if str(getattr(django_settings, "LOG_FORMAT", "plain")).lower() == "json":
        formatter: logging.Formatter = ArenaJSONFormatter()
    else:
        formatter = ArenaPlainFormatter()

    file_handler = SafeTimedRotatingFileHandler(
        filename=log_file_path,
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
        delay=True,  # 延迟打开文件，避免多进程抢占
    )
    file_handler.suffix = "%Y-%m-%d"  # system.log.2026-03-01
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    if os.getenv("DEBUG", "False").lower() == "true":
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    获取 logger 实例

        logger = get_logger(__name__)
        logger.info("报名成功", extra=logger_extra({"contest": slug}))
    """
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


# code 为选手提交的源代码，与密码/令牌一样不写入日志
SENSITIVE_KEYS = {"password", "token", "access", "refresh", "authorization", "code", "secret"}


def sanitize_extra(extra: Optional[dict] = None) -> dict:
    """过滤敏感字段，避免在日志中泄露密码/令牌/源代码"""
    if not extra:
        return {}
    return {k: ("***" if k.lower() in SENSITIVE_KEYS else v) for k, v in extra.items()}


def logger_extra(extra: Optional[dict] = None) -> dict:
    """封装 extra，自动过滤敏感字段"""
    return sanitize_extra(extra)

