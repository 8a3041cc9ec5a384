"""
排行榜

- 每次读取由提交日志重算（或命中缓存），不存储排名
- 排序：总分降序 → 最后得分时间升序 → 报名时间升序 → 参赛记录 id
- 总分与最后得分时间都相同的参赛者并列同一名次（1, 1, 3）
- 封榜：非管理者只看到封榜时间点之前的提交；存储的提交记录不受影响
- 缓存按 (比赛, 视图) 存入 Redis，任何判题结果写入后立即失效
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.infra import redis_client
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.utils.redis_keys import leaderboard_key
from apps.submissions.models import Submission
from apps.submissions.scoring import last_solved_at, summarize, total_score

from .lifecycle import freeze_threshold, is_frozen
from .models import Contest, ContestParticipant
from .permissions import is_privileged

logger = get_logger(__name__)

VIEW_PUBLIC = "public"
VIEW_FROZEN = "frozen"
VIEWS = (VIEW_PUBLIC, VIEW_FROZEN)


def _sort_key(entry: dict):
    last = entry["_last_solved_at"]
    return (
        -entry["total_score"],
        last is None,
        last or entry["_registered_at"],
        entry["_registered_at"],
        entry["participant_id"],
    )


def rank_entries(entries: list[dict]) -> list[dict]:
    """排序并按竞赛排名法赋名次：总分与最后得分时间相同者并列"""
    ordered = sorted(entries, key=_sort_key)
    previous = None
    rank = 0
    for position, entry in enumerate(ordered, start=1):
        tie_key = (entry["total_score"], entry["_last_solved_at"])
        if tie_key != previous:
            rank = position
            previous = tie_key
        entry["rank"] = rank
    return ordered


def compute_leaderboard(
        participants: Iterable[ContestParticipant],
        submissions: Iterable[Submission],
        *,
        cutoff: Optional[datetime] = None,
) -> list[dict]:
    """纯计算：给定参赛者与提交日志（按提交时间升序）生成带名次的排行榜"""
    by_participant: dict[int, list] = defaultdict(list)
    for submission in submissions:
        by_participant[submission.participant_id].append(submission)
    entries = []
    for participant in participants:
        results = summarize(by_participant.get(participant.id, []), cutoff=cutoff)
        solved_at = last_solved_at(results)
        entries.append(
            {
                "participant_id": participant.id,
                "user_id": participant.user_id,
                "username": getattr(participant.user, "username", None),
                "team_name": (participant.team_data or {}).get("name"),
                "total_score": total_score(results),
                "solved_count": sum(1 for r in results.values() if r.accepted),
                "last_solved_at": solved_at.isoformat() if solved_at else None,
                "registered_at": participant.registered_at.isoformat(),
                "_last_solved_at": solved_at,
                "_registered_at": participant.registered_at,
                "problems": [results[idx].to_dict() for idx in sorted(results)],
            }
        )
    ranked = rank_entries(entries)
    # 排序用的 datetime 字段不对外输出
    for entry in ranked:
        entry.pop("_last_solved_at")
        entry.pop("_registered_at")
    return ranked


class LeaderboardService:
    """排行榜读取：封榜判断、缓存读写与失效"""

    def __init__(self, cache_ttl: int | None = None):
        self.cache_ttl = cache_ttl if cache_ttl is not None else int(getattr(settings, "LEADERBOARD_CACHE_TTL", 30))

    @staticmethod
    def invalidate(contest: Contest) -> None:
        """事务提交后再删除缓存，避免并发读取在提交前回填旧排名"""
        keys = [leaderboard_key(contest.id, view) for view in VIEWS]
        transaction.on_commit(lambda: redis_client.delete(*keys))

    def build(self, contest: Contest, viewer=None, *, unfrozen: bool = False, now: datetime | None = None) -> dict:
        now = now or timezone.now()
        frozen = is_frozen(contest, now)
        # 管理者显式请求时返回未封榜视图
        apply_freeze = frozen and not (unfrozen and is_privileged(viewer, contest))
        view = VIEW_FROZEN if apply_freeze else VIEW_PUBLIC
        cutoff = freeze_threshold(contest) if apply_freeze else None

        key = leaderboard_key(contest.id, view)
        entries = redis_client.get_json(key)
        if entries is None:
            entries = self._compute(contest, cutoff=cutoff)
            redis_client.set_json(key, entries, ex=self.cache_ttl)
            logger.info(
                "排行榜重算",
                extra=logger_extra({"contest": contest.slug, "view": view, "entries": len(entries)}),
            )
        return {
            "contest": contest.slug,
            "frozen": apply_freeze,
            "freeze_at": cutoff,
            "generated_at": now,
            "entries": entries,
        }

    @staticmethod
    def _compute(contest: Contest, *, cutoff: Optional[datetime]) -> list[dict]:
        participants = (
            ContestParticipant.objects.filter(contest=contest, is_disqualified=False)
            .select_related("user")
            .order_by("registered_at", "id")
        )
        submissions = (
            Submission.objects.filter(contest=contest, participant__is_disqualified=False)
            .exclude(status=Submission.Status.PENDING)
            .only("id", "participant_id", "problem_index", "status", "score", "submitted_at")
            .order_by("submitted_at", "id")
        )
        return compute_leaderboard(participants, submissions, cutoff=cutoff)
