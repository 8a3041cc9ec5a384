from __future__ import annotations

from datetime import date, datetime
from typing import Any, Iterable

from django.utils import timezone

from apps.common.base.base_service import BaseService
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_utils import broadcast_notify
from apps.contests.models import Contest

from .models import Notification
from .repo import NotificationRepo

logger = get_logger(__name__)


def serialize_notification(notification: Notification) -> dict:
    """通知序列化：用于列表/计数接口"""
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "body": notification.body,
        "payload": notification.payload or {},
        "contest": getattr(notification.contest, "slug", None),
        "is_read": notification.is_read,
        "read_at": notification.read_at,
        "created_at": notification.created_at,
    }


def _normalize_payload(value: Any) -> Any:
    """
    将 payload 中的 datetime/date 等不可序列化对象转换为字符串，避免 JSONField 抛错
    """
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_normalize_payload(v) for v in value]
    if isinstance(value, dict):
        return {k: _normalize_payload(v) for k, v in value.items()}
    return value


def build_dedup_key(
        *,
        type: str,
        contest: Contest | None = None,
        bucket: str | None = None,
        extra: str | None = None,
) -> str:
    """构造去重键：按类型+关联比赛+时间桶/额外标识"""
    parts = [f"type:{type}", f"contest:{getattr(contest, 'id', '') or ''}"]
    if bucket:
        parts.append(f"bucket:{bucket}")
    if extra:
        parts.append(f"extra:{extra}")
    return "|".join(parts)


class NotificationCreateService(BaseService[Notification]):
    """
    创建/刷新通知服务：
    - 支持 dedup_key 去重，更新内容并重置已读状态
    - 只承担写入，不包含推送，推送留给调用方处理
    """

    atomic_enabled = False

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(
            self,
            user_id: int,
            *,
            type: str,
            title: str,
            body: str | None = None,
            payload: dict | None = None,
            contest: Contest | None = None,
            dedup_key: str | None = None,
    ) -> Notification:
        dedup_key = dedup_key or ""
        data = {
            "type": type,
            "title": title,
            "body": body or "",
            "payload": _normalize_payload(payload or {}),
            "contest": contest,
        }
        existing = self.repo.get_by_dedup(user_id, dedup_key)
        if existing:
            # 更新并重置已读，确保最新内容可见
            data["read_at"] = None
            return self.repo.update(existing, data)
        data.update({"user_id": user_id, "dedup_key": dedup_key})
        return self.repo.create(data)


class NotificationMarkReadService(BaseService[Notification]):
    """标记单条通知已读；他人的通知按不存在处理"""

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(self, user, notification_id: int) -> Notification:
        notif = self.repo.get_or_raise(pk=notification_id, user_id=user.id)
        notif.mark_read()
        return notif


class NotificationMarkAllReadService(BaseService[int]):
    """标记当前用户所有通知为已读，返回更新条数"""

    def __init__(self, repo: NotificationRepo | None = None):
        self.repo = repo or NotificationRepo()

    def perform(self, user) -> int:
        return self.repo.mark_all_read(user)


def create_and_push_notification(
        user_id: int,
        *,
        type: str,
        title: str,
        body: str | None = None,
        payload: dict | None = None,
        contest: Contest | None = None,
        dedup_key: str | None = None,
        repo: NotificationRepo | None = None,
) -> Notification:
    """创建通知并通过用户频道推送一份（推送失败不影响写入）"""
    notif = NotificationCreateService(repo=repo).execute(
        user_id,
        type=type,
        title=title,
        body=body,
        payload=payload,
        contest=contest,
        dedup_key=dedup_key,
    )
    broadcast_notify(
        user_id,
        {
            "event": "notification",
            "id": notif.id,
            "type": notif.type,
            "title": notif.title,
            "body": notif.body,
            "payload": notif.payload or {},
            "contest": getattr(contest, "slug", None),
            "created_at": timezone.now().isoformat(),
        },
    )
    return notif


def fanout_notifications(
        user_ids: Iterable[int],
        *,
        type: str,
        title: str,
        body: str | None = None,
        payload: dict | None = None,
        contest: Contest | None = None,
        dedup_key: str | None = None,
        repo: NotificationRepo | None = None,
) -> list[Notification]:
    """向一组用户发送同样的通知，复用同一 dedup_key（可选）"""
    repo = repo or NotificationRepo()
    notifs = [
        create_and_push_notification(
            user_id,
            type=type,
            title=title,
            body=body,
            payload=payload,
            contest=contest,
            dedup_key=dedup_key,
            repo=repo,
        )
        for user_id in user_ids
    ]
    if notifs:
        logger.info(
            "批量发送通知",
            extra=logger_extra({"type": type, "contest": getattr(contest, "slug", None), "count": len(notifs)}),
        )
    return notifs
