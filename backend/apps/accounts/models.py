"""
账户相关模型定义（社区、用户）

- Community：比赛归属的学习社区，缓存比赛数与参赛人次等统计
- User：扩展 AbstractUser，增加平台角色与所属社区，是比赛报名/提交/管理的认证主体
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class Community(models.Model):
    """学习社区：比赛、导师与学员的归属单位"""

    name = models.CharField("社区名称", max_length=120)
    slug = models.SlugField("标识", max_length=120, unique=True)
    description = models.TextField("社区简介", blank=True, default="")
    owner = models.ForeignKey(
        "accounts.User",
        verbose_name="所有者",
        related_name="owned_communities",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # 统计字段：由报名/创建比赛时用 F() 表达式维护，仅作展示缓存
    total_contests = models.PositiveIntegerField("比赛数", default=0)
    total_participations = models.PositiveIntegerField("参赛人次", default=0)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "社区"
        verbose_name_plural = "社区"

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """
    平台用户：
    - role 决定能否创建/管理比赛（mentor / community_admin / admin）
    - community 决定可报名哪些社区的比赛
    """

    class Role(models.TextChoices):
        STUDENT = "student", "学员"
        MENTOR = "mentor", "导师"
        COMMUNITY_ADMIN = "community_admin", "社区管理员"
        ADMIN = "admin", "平台管理员"

    nickname = models.CharField("昵称", max_length=40, blank=True, default="")
    role = models.CharField("角色", max_length=20, choices=Role.choices, default=Role.STUDENT, db_index=True)
    community = models.ForeignKey(
        Community,
        verbose_name="所属社区",
        related_name="members",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        verbose_name = "用户"
        verbose_name_plural = "用户"

    def save(self, *args, **kwargs):
        if not self.nickname:
            self.nickname = self.username
        super().save(*args, **kwargs)

    @property
    def display_name(self) -> str:
        return self.nickname or self.username
