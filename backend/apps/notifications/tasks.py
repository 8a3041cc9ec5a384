from __future__ import annotations

from datetime import datetime, timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from apps.accounts.repo import UserRepo
from apps.common.infra.logger import get_logger, logger_extra
from apps.contests.lifecycle import SCHEDULED_STATUSES, freeze_threshold
from apps.contests.models import Contest
from apps.contests.repo import ContestParticipantRepo, ContestRepo

from .models import Notification
from .services import build_dedup_key, fanout_notifications

logger = get_logger(__name__)

# 提醒窗口：扫描周期为 5 分钟，窗口略大于周期以免漏发，重复由 dedup_key 吸收
_WINDOW = timedelta(minutes=10)


def _within(moment: datetime | None, now: datetime) -> bool:
    return moment is not None and moment <= now <= moment + _WINDOW


def _notify_participants(contest: Contest, *, type: str, title: str, body: str, bucket: str) -> int:
    """对未被取消资格的参赛者推送通知"""
    user_ids = list(
        ContestParticipantRepo()
        .list_for_contest(contest, include_disqualified=False)
        .values_list("user_id", flat=True)
    )
    if not user_ids:
        return 0
    fanout_notifications(
        user_ids,
        type=type,
        title=title,
        body=body,
        payload={"contest": contest.slug},
        contest=contest,
        dedup_key=build_dedup_key(type=type, contest=contest, bucket=bucket),
    )
    return len(user_ids)


def _notify_community(contest: Contest, *, type: str, title: str, body: str, bucket: str) -> int:
    """向比赛所属社区的活跃成员广播（报名开启等公开事件）"""
    user_ids = list(
        UserRepo().filter(community_id=contest.community_id, is_active=True).values_list("id", flat=True)
    )
    if not user_ids:
        return 0
    fanout_notifications(
        user_ids,
        type=type,
        title=title,
        body=body,
        payload={"contest": contest.slug},
        contest=contest,
        dedup_key=build_dedup_key(type=type, contest=contest, bucket=bucket),
    )
    return len(user_ids)


@shared_task(name="notifications.scan_contests")
def scan_contests_for_notifications() -> int:
    """周期扫描比赛时间窗口，生成报名开启/即将开赛/开赛/封榜/结束提醒，返回发送条数"""
    now = timezone.now()
    start_soon = timedelta(seconds=int(getattr(settings, "NOTIFY_CONTEST_START_SOON_SECONDS", 3600)))
    sent = 0
    contests = ContestRepo().filter(
        status__in=list(SCHEDULED_STATUSES | {Contest.Status.ACTIVE, Contest.Status.COMPLETED}),
        end_time__gte=now - _WINDOW,
    )
    for contest in contests:
        if contest.status == Contest.Status.REGISTRATION_OPEN and _within(contest.registration_start, now):
            sent += _notify_community(
                contest,
                type=Notification.Type.CONTEST_REG_OPEN,
                title=f"{contest.title} 报名开启",
                body=f"报名截止：{contest.registration_end:%Y-%m-%d %H:%M}",
                bucket="reg-open",
            )
        if now <= contest.start_time <= now + start_soon:
            sent += _notify_participants(
                contest,
                type=Notification.Type.CONTEST_UPCOMING,
                title=f"{contest.title} 即将开赛",
                body=f"开赛时间：{contest.start_time:%Y-%m-%d %H:%M}",
                bucket=contest.start_time.isoformat(timespec="minutes"),
            )
        if _within(contest.start_time, now):
            sent += _notify_participants(
                contest,
                type=Notification.Type.CONTEST_STARTED,
                title=f"{contest.title} 已开赛",
                body=f"结束时间：{contest.end_time:%Y-%m-%d %H:%M}",
                bucket="started",
            )
        if contest.freeze_leaderboard and _within(freeze_threshold(contest), now):
            sent += _notify_participants(
                contest,
                type=Notification.Type.CONTEST_FREEZE,
                title=f"{contest.title} 榜单已冻结",
                body="封榜后提交仍会判题，榜单在比赛结束后公布",
                bucket="freeze",
            )
        if _within(contest.end_time, now):
            sent += _notify_participants(
                contest,
                type=Notification.Type.CONTEST_ENDED,
                title=f"{contest.title} 已结束",
                body="感谢参赛，请关注最终排名",
                bucket="ended",
            )
    logger.info("比赛提醒扫描完成", extra=logger_extra({"sent": sent}))
    return sent
