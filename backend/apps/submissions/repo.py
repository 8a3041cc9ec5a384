from __future__ import annotations

from typing import Optional

from django.db.models import QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import Submission


# 仓储层：封装提交记录的查询与写入


class SubmissionRepo(BaseRepo[Submission]):
    """提交仓储：提交日志只追加，判题结果写入一次"""

    model = Submission
    not_found_message = "提交记录不存在"

    def filter_with_related(self, **kwargs) -> QuerySet[Submission]:
        """带常用外键的筛选，减少后续访问 N+1"""
        return self.filter(**kwargs).select_related("contest", "user")

    def count_attempts(self, participant_id: int, problem_index: int) -> int:
        """已记录的提交次数（含判题中），用于提交次数上限"""
        return self.count(participant_id=participant_id, problem_index=problem_index)

    def log_for_participant(self, participant_id: int) -> QuerySet[Submission]:
        """按提交时间升序的判题日志，供分数重算"""
        return (
            self.filter(participant_id=participant_id)
            .exclude(status=Submission.Status.PENDING)
            .order_by("submitted_at", "id")
        )

    def list_for_contest(
            self,
            contest_id: int,
            *,
            user_id: Optional[int] = None,
            problem_index: Optional[int] = None,
    ) -> QuerySet[Submission]:
        qs = self.filter_with_related(contest_id=contest_id)
        if user_id is not None:
            qs = qs.filter(user_id=user_id)
        if problem_index is not None:
            qs = qs.filter(problem_index=problem_index)
        return qs.order_by("-submitted_at", "-id")
