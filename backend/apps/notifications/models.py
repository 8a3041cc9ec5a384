from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class Notification(models.Model):
    """
    站内通知模型：
    - 针对用户的私有通知（报名结果、判题结果、比赛提醒）
    - 通知只用于告知，不参与比赛状态判断
    """

    class Type(models.TextChoices):
        CONTEST_NEW = "contest_new", "新比赛发布"
        CONTEST_REG_OPEN = "contest_registration_open", "报名开启"
        CONTEST_REG_SUCCESS = "contest_registration_success", "报名成功"
        CONTEST_UPCOMING = "contest_upcoming", "即将开赛"
        CONTEST_STARTED = "contest_started", "比赛开始"
        CONTEST_FREEZE = "contest_freeze", "封榜生效"
        CONTEST_ENDED = "contest_ended", "比赛结束"
        CONTEST_CANCELLED = "contest_cancelled", "比赛取消"
        CONTEST_DISQUALIFIED = "contest_disqualified", "取消参赛资格"
        SUBMISSION_RESULT = "submission_result", "判题结果"
        CLARIFICATION_ANSWERED = "clarification_answered", "答疑回复"

    user = models.ForeignKey(User, verbose_name="接收用户", related_name="notifications", on_delete=models.CASCADE)
    type = models.CharField("通知类型", max_length=64, choices=Type.choices)
    contest = models.ForeignKey(
        "contests.Contest",
        verbose_name="关联比赛",
        related_name="notifications",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
    )
    title = models.CharField("标题", max_length=200)
    body = models.TextField("正文", blank=True, default="")
    payload = models.JSONField("附加数据", default=dict, blank=True)
    dedup_key = models.CharField("去重键", max_length=255, blank=True, default="", db_index=True)
    read_at = models.DateTimeField("已读时间", null=True, blank=True)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "通知"
        verbose_name_plural = "通知"
        indexes = [
            models.Index(fields=["user", "read_at"], name="notif_user_read_idx"),
            models.Index(fields=["user", "type", "created_at"], name="notif_user_type_time_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "dedup_key"],
                condition=~Q(dedup_key=""),
                name="uniq_notification_user_dedup_key",
            )
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} - {self.title}"

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    def mark_read(self) -> None:
        if self.read_at:
            return
        self.read_at = timezone.now()
        self.save(update_fields=["read_at"])
