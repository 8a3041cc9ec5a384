"""
比赛生命周期（纯函数，不访问数据库）

- derive_phase：由 (status, 时间窗口, now) 计算实时阶段，任何地方都不得自行比较时间
- ContestAction：生命周期操作的封闭枚举，每个成员在 services 中有且仅有一个处理类
- TRANSITIONS：各操作允许的来源状态与目标状态
- expected_status：惰性同步时根据时钟推算应处的存储状态
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.db.models import Q

from apps.common.exceptions import ValidationError

from .models import Contest

Status = Contest.Status


class ContestPhase(str, enum.Enum):
    UPCOMING = "upcoming"
    RUNNING = "running"
    ENDED = "ended"


class ContestAction(str, enum.Enum):
    PUBLISH = "publish"
    OPEN_REGISTRATION = "open_registration"
    CLOSE_REGISTRATION = "close_registration"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


# 已发布、等待开赛的状态：阶段按 start_time / end_time 推算
SCHEDULED_STATUSES = frozenset({Status.PUBLISHED, Status.REGISTRATION_OPEN, Status.REGISTRATION_CLOSED})
TERMINAL_STATUSES = frozenset({Status.COMPLETED, Status.CANCELLED})
REGISTRATION_STATUSES = frozenset({Status.PUBLISHED, Status.REGISTRATION_OPEN})


@dataclass(frozen=True)
class TransitionRule:
    sources: frozenset
    target: str


TRANSITIONS: dict[ContestAction, TransitionRule] = {
    ContestAction.PUBLISH: TransitionRule(frozenset({Status.DRAFT}), Status.PUBLISHED),
    ContestAction.OPEN_REGISTRATION: TransitionRule(
        frozenset({Status.DRAFT, Status.PUBLISHED}), Status.REGISTRATION_OPEN
    ),
    ContestAction.CLOSE_REGISTRATION: TransitionRule(
        frozenset({Status.PUBLISHED, Status.REGISTRATION_OPEN}), Status.REGISTRATION_CLOSED
    ),
    ContestAction.START: TransitionRule(frozenset({Status.DRAFT}) | SCHEDULED_STATUSES, Status.ACTIVE),
    ContestAction.COMPLETE: TransitionRule(frozenset({Status.ACTIVE}), Status.COMPLETED),
    ContestAction.CANCEL: TransitionRule(
        frozenset(Status.values) - TERMINAL_STATUSES, Status.CANCELLED
    ),
}


def derive_phase(contest: Contest, now: datetime) -> str:
    """
    实时阶段：
    - completed / cancelled：ended
    - draft：结束时间前为 upcoming（草稿永远不会处于 running）
    - active：结束时间前为 running
    - 已发布类状态：[start_time, end_time) 为 running，之前 upcoming，之后 ended
    """
    status = contest.status
    if status in TERMINAL_STATUSES:
        return ContestPhase.ENDED.value
    if now >= contest.end_time:
        return ContestPhase.ENDED.value
    if status == Status.DRAFT:
        return ContestPhase.UPCOMING.value
    if status == Status.ACTIVE:
        return ContestPhase.RUNNING.value
    if now < contest.start_time:
        return ContestPhase.UPCOMING.value
    return ContestPhase.RUNNING.value


def running_q(now: datetime) -> Q:
    """与 derive_phase(...) == running 等价的查询条件"""
    return Q(status=Status.ACTIVE, end_time__gt=now) | Q(
        status__in=SCHEDULED_STATUSES, start_time__lte=now, end_time__gt=now
    )


def upcoming_q(now: datetime) -> Q:
    return Q(status=Status.DRAFT, end_time__gt=now) | Q(status__in=SCHEDULED_STATUSES, start_time__gt=now)


def ended_q(now: datetime) -> Q:
    return Q(status__in=TERMINAL_STATUSES) | Q(end_time__lte=now)


PHASE_FILTERS = {
    ContestPhase.UPCOMING.value: upcoming_q,
    ContestPhase.RUNNING.value: running_q,
    ContestPhase.ENDED.value: ended_q,
}


def validate_schedule(
        registration_start: Optional[datetime],
        registration_end: Optional[datetime],
        start_time: Optional[datetime],
        end_time: Optional[datetime],
) -> None:
    """registration_start < registration_end <= start_time < end_time"""
    if None in (registration_start, registration_end, start_time, end_time):
        raise ValidationError(message="比赛时间窗口不完整")
    if not registration_start < registration_end:
        raise ValidationError(message="报名开始时间必须早于报名截止时间")
    if not registration_end <= start_time:
        raise ValidationError(message="报名截止时间不能晚于比赛开始时间")
    if not start_time < end_time:
        raise ValidationError(message="比赛开始时间必须早于结束时间")


def expected_status(contest: Contest, now: datetime) -> Optional[str]:
    """
    惰性同步：返回按时钟应处的存储状态，无需变更时返回 None
    - 已发布类 / active 且已过结束时间 → completed
    - 已发布类且处于比赛窗口 → active
    - registration_open 且报名已截止 → registration_closed
    """
    status = contest.status
    if status == Status.ACTIVE or status in SCHEDULED_STATUSES:
        if now >= contest.end_time:
            return Status.COMPLETED
    if status in SCHEDULED_STATUSES and contest.start_time <= now < contest.end_time:
        return Status.ACTIVE
    if status == Status.REGISTRATION_OPEN and now > contest.registration_end:
        return Status.REGISTRATION_CLOSED
    return None


def freeze_threshold(contest: Contest) -> datetime:
    return contest.end_time - timedelta(minutes=contest.freeze_minutes or 0)


def is_frozen(contest: Contest, now: datetime) -> bool:
    """封榜条件：开启封榜、比赛进行中且已进入封榜窗口"""
    if not contest.freeze_leaderboard:
        return False
    if derive_phase(contest, now) != ContestPhase.RUNNING.value:
        return False
    return now > freeze_threshold(contest)
