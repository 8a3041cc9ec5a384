# -*- coding: utf-8 -*-
"""
WebSocket 工具：封装 Channels 组广播，调用方无需关心 channel layer 细节
- 统一附带自增序号 seq，便于前端按序处理/去重
- 比赛组 contest_<slug>：状态流转、排行榜刷新等公开事件
- 用户组 user_<id>：报名结果、判题结果等私有事件
"""

from __future__ import annotations

import itertools

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from apps.common.infra.logger import get_logger, logger_extra

logger = get_logger(__name__)
_seq_generator = itertools.count(1)


def contest_group(contest_slug: str) -> str:
    return f"contest_{contest_slug or 'unknown'}"


def user_group(user_id: int) -> str:
    return f"user_{user_id}"


def _safe_group_send(group: str, payload: dict) -> None:
    """没有 channel layer 或发送失败时跳过，广播不影响业务结果"""
    layer = get_channel_layer()
    if layer is None:
        return
    try:
        async_to_sync(layer.group_send)(group, {"type": "broadcast", **payload})
    except Exception:
        logger.warning(
            "WebSocket 广播失败，已忽略",
            extra=logger_extra({"group": group, "event": payload.get("event")}),
            exc_info=True,
        )


def broadcast_notify(user_id: int | None, payload: dict) -> None:
    """向指定用户组广播事件"""
    if not user_id:
        return
    _safe_group_send(user_group(user_id), {"seq": next(_seq_generator), **payload})


def broadcast_contest(contest_slug: str, payload: dict) -> None:
    """向比赛组广播事件"""
    _safe_group_send(contest_group(contest_slug), {"seq": next(_seq_generator), **payload})
