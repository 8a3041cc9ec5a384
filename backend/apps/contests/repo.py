from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from django.db.models import F, Q, QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import Clarification, Contest, ContestParticipant, Problem


# 仓储层：封装比赛、题目、参赛者、答疑的 ORM 访问，提供业务友好的查询与写入


class ContestRepo(BaseRepo[Contest]):
    """比赛仓储：提供 slug 查询、条件状态更新与计数维护"""

    model = Contest
    not_found_message = "比赛不存在"

    def get_queryset(self) -> QuerySet[Contest]:
        return super().get_queryset().select_related("community", "created_by")

    def get_by_slug(self, slug: str) -> Contest:
        """通过 slug 获取比赛，未找到抛业务级 404"""
        return self.get_or_raise(slug=slug)

    def lock_by_slug(self, slug: str) -> Contest:
        """报名等需要串行化的操作：锁住比赛行"""
        return self.lock(slug=slug)

    def compare_and_set_status(self, contest: Contest, *, expected: str, target: str) -> bool:
        """
        条件更新：仅当库中状态仍为 expected 时写入 target
        - 并发请求同时同步状态时只有一个成功，其余读取最新值即可
        """
        updated = self.filter(pk=contest.pk, status=expected).update(status=target)
        if updated:
            contest.status = target
        return bool(updated)

    def incr_participants(self, contest_id: int, delta: int = 1) -> None:
        qs = self.filter(pk=contest_id)
        if delta < 0:
            qs = qs.filter(participant_count__gte=-delta)
        qs.update(participant_count=F("participant_count") + delta)

    def slug_exists(self, slug: str) -> bool:
        return self.exists(slug=slug)


class ProblemRepo(BaseRepo[Problem]):
    """题目仓储：按题号定位与整体替换"""

    model = Problem

    def list_for_contest(self, contest: Contest) -> QuerySet[Problem]:
        return self.filter(contest=contest).order_by("index")

    def get_by_index(self, contest: Contest, index: int) -> Optional[Problem]:
        return self.get_or_none(contest=contest, index=index)

    def replace_for_contest(self, contest: Contest, problems: Iterable[dict]) -> list[Problem]:
        """按提交顺序重建题目列表，题号从 0 连续编号"""
        self.filter(contest=contest).delete()
        rows = [Problem(contest=contest, index=idx, **data) for idx, data in enumerate(problems)]
        return Problem.objects.bulk_create(rows)


class ContestParticipantRepo(BaseRepo[ContestParticipant]):
    """参赛者仓储"""

    model = ContestParticipant
    not_found_message = "参赛记录不存在"

    def get_queryset(self) -> QuerySet[ContestParticipant]:
        return super().get_queryset().select_related("user")

    def get_for_user(self, contest: Contest, user_id: int) -> Optional[ContestParticipant]:
        return self.get_or_none(contest=contest, user_id=user_id)

    def lock_for_user(self, contest: Contest, user_id: int) -> ContestParticipant:
        """重算聚合分数前锁定参赛者行"""
        return self.lock(contest=contest, user_id=user_id)

    def list_for_contest(self, contest: Contest, *, include_disqualified: bool = True) -> QuerySet[ContestParticipant]:
        qs = self.filter(contest=contest)
        if not include_disqualified:
            qs = qs.filter(is_disqualified=False)
        return qs.order_by("registered_at", "id")

    def count_for_contest(self, contest: Contest) -> int:
        return self.count(contest=contest)


class ClarificationRepo(BaseRepo[Clarification]):
    """答疑仓储"""

    model = Clarification
    not_found_message = "答疑不存在"

    def get_queryset(self) -> QuerySet[Clarification]:
        return super().get_queryset().select_related("contest", "asked_by")

    def list_visible(self, contest: Contest, *, user_id: Optional[int], privileged: bool) -> QuerySet[Clarification]:
        """管理者可见全部；其他人可见公开答疑与自己的提问"""
        qs = self.filter(contest=contest)
        if privileged:
            return qs
        if user_id is None:
            return qs.filter(is_public=True)
        return qs.filter(Q(is_public=True) | Q(asked_by_id=user_id))

    def answer(self, clarification: Clarification, *, answer: str, is_public: bool, actor_id: int,
               at: datetime) -> Clarification:
        return self.update(
            clarification,
            {"answer": answer, "is_public": is_public, "answered_by_id": actor_id, "answered_at": at},
        )
