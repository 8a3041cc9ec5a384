from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

# 模型定义：代码提交记录（按比赛归档的只追加日志），参赛者总分由日志重算

User = settings.AUTH_USER_MODEL


class Submission(models.Model):
    """
    代码提交记录：
    - 关联比赛、参赛记录、题目与提交人
    - 创建时为 pending，判题完成后写入结果；记录本身不删除、不回写历史
    """

    class Status(models.TextChoices):
        PENDING = "pending", "判题中"
        ACCEPTED = "accepted", "通过"
        WRONG_ANSWER = "wrong_answer", "答案错误"
        TIME_LIMIT_EXCEEDED = "time_limit_exceeded", "运行超时"
        MEMORY_LIMIT_EXCEEDED = "memory_limit_exceeded", "内存超限"
        RUNTIME_ERROR = "runtime_error", "运行错误"
        COMPILATION_ERROR = "compilation_error", "编译错误"
        PARTIAL = "partial", "部分通过"

    contest = models.ForeignKey("contests.Contest", verbose_name="所属比赛", related_name="submissions",
                                on_delete=models.CASCADE)
    participant = models.ForeignKey("contests.ContestParticipant", verbose_name="参赛记录",
                                    related_name="submissions", on_delete=models.CASCADE)
    user = models.ForeignKey(User, verbose_name="用户", related_name="submissions", on_delete=models.CASCADE)
    problem = models.ForeignKey("contests.Problem", verbose_name="题目", related_name="submissions",
                                on_delete=models.CASCADE)
    # 冗余题号，便于按题统计
    problem_index = models.PositiveIntegerField("题号")
    language = models.CharField("语言", max_length=32)
    code = models.TextField("代码")
    status = models.CharField("状态", max_length=32, choices=Status.choices, default=Status.PENDING, db_index=True)
    score = models.FloatField("得分", default=0)
    test_cases_passed = models.PositiveIntegerField("通过用例数", default=0)
    total_test_cases = models.PositiveIntegerField("用例总数", default=0)
    execution_time_ms = models.PositiveIntegerField("运行时间（毫秒）", null=True, blank=True)
    memory_kb = models.PositiveIntegerField("内存（KB）", null=True, blank=True)
    # 判题消息（编译错误信息等）
    message = models.CharField("提示", max_length=500, blank=True, default="")
    submitted_at = models.DateTimeField("提交时间", default=timezone.now, db_index=True)
    judged_at = models.DateTimeField("判题时间", null=True, blank=True)

    class Meta:
        ordering = ["-submitted_at", "-id"]
        indexes = [
            models.Index(fields=["contest", "submitted_at"], name="submission_contest_time_idx"),
            models.Index(fields=["participant", "problem_index"], name="submission_participant_idx"),
        ]
        verbose_name = "代码提交"
        verbose_name_plural = "代码提交"

    def __str__(self) -> str:
        return f"{self.user_id} -> {self.contest_id}#{self.problem_index} ({self.status})"

    @property
    def is_judged(self) -> bool:
        return self.status != self.Status.PENDING
