from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

# 模型文件：负责比赛、题目、参赛者与答疑的数据结构定义，不承载业务流程
# 比赛阶段（upcoming / running / ended）不落库，统一由 lifecycle.derive_phase 实时计算

User = settings.AUTH_USER_MODEL


def _default_max_participants():
    return getattr(settings, "CONTEST_DEFAULT_MAX_PARTICIPANTS", 100)


def _default_freeze_minutes():
    return getattr(settings, "CONTEST_DEFAULT_FREEZE_MINUTES", 60)


class Contest(models.Model):
    """
    比赛模型：
    - 覆盖比赛的配置（时间窗口、赛制、规则）与存储状态 status
    - 参赛者与提交记录以独立表按比赛归档，总分等聚合字段由提交日志重算
    """

    class Status(models.TextChoices):
        DRAFT = "draft", "草稿"
        PUBLISHED = "published", "已发布"
        REGISTRATION_OPEN = "registration_open", "报名中"
        REGISTRATION_CLOSED = "registration_closed", "报名截止"
        ACTIVE = "active", "进行中"
        COMPLETED = "completed", "已结束"
        CANCELLED = "cancelled", "已取消"

    class ContestType(models.TextChoices):
        INDIVIDUAL = "individual", "个人赛"
        TEAM = "team", "团队赛"

    class ScoringMode(models.TextChoices):
        ALL_OR_NOTHING = "all_or_nothing", "全对得分"
        PARTIAL = "partial", "按测试点得分"

    # 唯一标识，供路由与接口访问
    slug = models.SlugField("标识", max_length=200, unique=True)
    title = models.CharField("比赛名称", max_length=200)
    description = models.TextField("比赛描述", blank=True, default="")
    community = models.ForeignKey(
        "accounts.Community",
        verbose_name="所属社区",
        related_name="contests",
        on_delete=models.CASCADE,
    )
    created_by = models.ForeignKey(
        User,
        verbose_name="创建人",
        related_name="created_contests",
        null=True,
        on_delete=models.SET_NULL,
    )
    contest_type = models.CharField("赛制", max_length=20, choices=ContestType.choices,
                                    default=ContestType.INDIVIDUAL)
    # 时间窗口：registration_start < registration_end <= start_time < end_time
    registration_start = models.DateTimeField("报名开始时间")
    registration_end = models.DateTimeField("报名截止时间")
    start_time = models.DateTimeField("开始时间")
    end_time = models.DateTimeField("结束时间")
    # 为空表示不限人数
    max_participants = models.PositiveIntegerField("人数上限", null=True, blank=True,
                                                   default=_default_max_participants)
    status = models.CharField("状态", max_length=32, choices=Status.choices, default=Status.DRAFT, db_index=True)
    # 规则
    allow_clarifications = models.BooleanField("允许答疑", default=True)
    freeze_leaderboard = models.BooleanField("封榜", default=False)
    freeze_minutes = models.PositiveIntegerField("封榜时长（分钟）", default=_default_freeze_minutes)
    max_attempts = models.PositiveIntegerField("单题提交次数上限", null=True, blank=True)
    scoring_mode = models.CharField("计分方式", max_length=20, choices=ScoringMode.choices,
                                    default=ScoringMode.ALL_OR_NOTHING)
    # 为空列表表示不限语言
    allowed_languages = models.JSONField("允许的语言", default=list, blank=True)
    participant_count = models.PositiveIntegerField("参赛人数", default=0)
    created_at = models.DateTimeField("创建时间", auto_now_add=True)
    updated_at = models.DateTimeField("更新时间", auto_now=True)

    class Meta:
        ordering = ["-start_time", "title"]
        indexes = [
            models.Index(fields=["community", "status"], name="contest_community_status_idx"),
            models.Index(fields=["start_time"], name="contest_start_time_idx"),
        ]
        verbose_name = "比赛"
        verbose_name_plural = "比赛"

    def __str__(self) -> str:
        return self.title

    @property
    def phase(self) -> str:
        """实时阶段，每次读取都按当前时间计算"""
        from .lifecycle import derive_phase

        return derive_phase(self, timezone.now())

    @property
    def rules(self) -> dict:
        return {
            "allow_clarifications": self.allow_clarifications,
            "freeze_leaderboard": self.freeze_leaderboard,
            "freeze_minutes": self.freeze_minutes,
            "max_attempts": self.max_attempts,
            "scoring_mode": self.scoring_mode,
            "allowed_languages": list(self.allowed_languages or []),
        }


class Problem(models.Model):
    """比赛题目：index 为比赛内题号（从 0 开始），提交按题号定位"""

    class Difficulty(models.TextChoices):
        EASY = "easy", "简单"
        MEDIUM = "medium", "中等"
        HARD = "hard", "困难"

    contest = models.ForeignKey(Contest, verbose_name="所属比赛", related_name="problems",
                                on_delete=models.CASCADE)
    index = models.PositiveIntegerField("题号")
    title = models.CharField("题目名称", max_length=200)
    description = models.TextField("题目描述", blank=True, default="")
    difficulty = models.CharField("难度", max_length=10, choices=Difficulty.choices, default=Difficulty.EASY)
    points = models.PositiveIntegerField("分值", default=100)
    time_limit_ms = models.PositiveIntegerField("时间限制（毫秒）", default=2000)
    memory_limit_mb = models.PositiveIntegerField("内存限制（MB）", default=256)
    sample_input = models.TextField("样例输入", blank=True, default="")
    sample_output = models.TextField("样例输出", blank=True, default="")
    # [{"input": "...", "output": "...", "is_hidden": true}]
    test_cases = models.JSONField("测试用例", default=list, blank=True)
    tags = models.JSONField("标签", default=list, blank=True)

    class Meta:
        ordering = ["contest", "index"]
        constraints = [
            models.UniqueConstraint(fields=["contest", "index"], name="uniq_contest_problem_index"),
        ]
        verbose_name = "题目"
        verbose_name_plural = "题目"

    def __str__(self) -> str:
        return f"{self.contest_id}#{self.index} {self.title}"


class ContestParticipant(models.Model):
    """
    参赛记录：
    - (contest, user) 唯一，数据库约束兜底并发重复报名
    - score / solved_problems 为提交日志的聚合结果，只能通过重算写入
    """

    contest = models.ForeignKey(Contest, verbose_name="比赛", related_name="participants",
                                on_delete=models.CASCADE)
    user = models.ForeignKey(User, verbose_name="用户", related_name="contest_participations",
                             on_delete=models.CASCADE)
    registered_at = models.DateTimeField("报名时间", default=timezone.now)
    # 团队赛附加信息：{"name": "...", "members": [...]}
    team_data = models.JSONField("队伍信息", null=True, blank=True)
    score = models.FloatField("总分", default=0)
    solved_problems = models.JSONField("已解决题号", default=list, blank=True)
    is_disqualified = models.BooleanField("已取消资格", default=False)

    class Meta:
        ordering = ["registered_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["contest", "user"], name="uniq_contest_participant"),
        ]
        verbose_name = "参赛者"
        verbose_name_plural = "参赛者"

    def __str__(self) -> str:
        return f"{self.contest_id}:{self.user_id}"


class Clarification(models.Model):
    """比赛答疑：参赛者提问，比赛管理者回复并决定是否公开"""

    contest = models.ForeignKey(Contest, verbose_name="比赛", related_name="clarifications",
                                on_delete=models.CASCADE)
    asked_by = models.ForeignKey(User, verbose_name="提问人", related_name="clarifications",
                                 on_delete=models.CASCADE)
    problem_index = models.PositiveIntegerField("题号", null=True, blank=True)
    question = models.TextField("问题")
    answer = models.TextField("回复", blank=True, default="")
    is_public = models.BooleanField("公开", default=False)
    asked_at = models.DateTimeField("提问时间", auto_now_add=True)
    answered_at = models.DateTimeField("回复时间", null=True, blank=True)
    answered_by = models.ForeignKey(
        User,
        verbose_name="回复人",
        related_name="answered_clarifications",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )

    class Meta:
        ordering = ["-asked_at", "-id"]
        verbose_name = "答疑"
        verbose_name_plural = "答疑"

    def __str__(self) -> str:
        return f"{self.contest_id}:{self.question[:20]}"
