"""
Redis 客户端封装：
- 统一读取 settings 中的 Redis 配置，提供 get/set/delete/json 存取
- Redis 不可用时记录警告并返回空结果，由上层回退到实时计算（排行榜）或进程内逻辑
"""

from __future__ import annotations

import json
from typing import Any, Optional

import redis
from django.conf import settings

from apps.common.infra.logger import get_logger, logger_extra

_logger = get_logger(__name__)
_client: Optional[redis.Redis] = None


def _get_client() -> redis.Redis:
    """懒加载连接池，进程内复用同一个客户端"""
    global _client
    if _client is None:
        _client = redis.Redis(
            host=getattr(settings, "REDIS_HOST", "127.0.0.1"),
            port=int(getattr(settings, "REDIS_PORT", 6379)),
            db=int(getattr(settings, "REDIS_DB_CACHE", 0)),
            password=getattr(settings, "REDIS_PASSWORD", None) or None,
            decode_responses=True,
            socket_connect_timeout=float(getattr(settings, "REDIS_CONNECT_TIMEOUT", 0.2)),
            socket_timeout=float(getattr(settings, "REDIS_SOCKET_TIMEOUT", 0.5)),
        )
    return _client


def enabled() -> bool:
    """settings.REDIS_ENABLED=False 时（如单测环境）跳过所有缓存读写"""
    return bool(getattr(settings, "REDIS_ENABLED", True))


def set(key: str, value: Any, ex: Optional[int] = None) -> None:
    """设置键值，可选过期时间（秒）"""
    if not enabled():
        return
    try:
        _get_client().set(key, value, ex=ex)
    except redis.RedisError:
        _logger.warning("Redis 写入失败，已跳过", extra=logger_extra({"key": key}))


def get(key: str) -> Optional[str]:
    """获取键值，不存在或 Redis 不可用时返回 None"""
    if not enabled():
        return None
    try:
        return _get_client().get(key)
    except redis.RedisError:
        _logger.warning("Redis 读取失败，已跳过", extra=logger_extra({"key": key}))
        return None


def delete(*keys: str) -> None:
    """删除键，失败时跳过"""
    if not enabled() or not keys:
        return
    try:
        _get_client().delete(*keys)
    except redis.RedisError:
        _logger.warning("Redis 删除键失败，已跳过", extra=logger_extra({"key": ",".join(keys)}))


def set_json(key: str, data: Any, ex: Optional[int] = None) -> None:
    """以 JSON 序列化存储结构化数据"""
    set(key, json.dumps(data, ensure_ascii=False, default=str), ex=ex)


def get_json(key: str) -> Optional[Any]:
    """获取 JSON 数据并反序列化，失败返回 None"""
    raw = get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None
