from __future__ import annotations

from datetime import datetime
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Q
from django.utils import timezone
from django.utils.text import slugify

from apps.accounts.directory import UserDirectory
from apps.accounts.models import User
from apps.accounts.repo import CommunityRepo, UserRepo
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    AlreadyRegisteredError,
    CannotDeleteRunningContestError,
    CapacityExceededError,
    ClarificationsDisabledError,
    ConflictError,
    ContestError,
    ImmutableDuringContestError,
    InvalidProblemIndexError,
    InvalidTransitionError,
    NotAParticipantError,
    PermissionDeniedError,
    RegistrationClosedError,
    ValidationError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.permissions import (
    CONTEST_MANAGER_ROLES,
    ROLE_STUDENT,
    ensure_role,
    is_platform_admin,
)
from apps.common.ws_utils import broadcast_contest
from apps.notifications.models import Notification
from apps.notifications.services import (
    build_dedup_key,
    create_and_push_notification,
    fanout_notifications,
)
from apps.submissions.models import Submission

from .leaderboard import LeaderboardService
from .lifecycle import (
    REGISTRATION_STATUSES,
    TRANSITIONS,
    ContestAction,
    ContestPhase,
    derive_phase,
    expected_status,
    validate_schedule,
)
from .permissions import is_privileged
from .models import Clarification, Contest, ContestParticipant, Problem
from .repo import ClarificationRepo, ContestParticipantRepo, ContestRepo, ProblemRepo
from .schemas import (
    ClarificationAnswerSchema,
    ClarificationAskSchema,
    ContestCreateSchema,
    ContestUpdateSchema,
    RegistrationSchema,
)

# 服务层：实现比赛生命周期、报名、答疑与统计的业务流程，依赖仓储与 Schema 校验

logger = get_logger(__name__)


def serialize_problem(problem: Problem, *, include_hidden: bool = False) -> dict:
    """题目序列化：默认隐藏测试用例，管理者可见全部"""
    data = {
        "index": problem.index,
        "title": problem.title,
        "description": problem.description,
        "difficulty": problem.difficulty,
        "points": problem.points,
        "time_limit_ms": problem.time_limit_ms,
        "memory_limit_mb": problem.memory_limit_mb,
        "sample_input": problem.sample_input,
        "sample_output": problem.sample_output,
        "tags": list(problem.tags or []),
    }
    if include_hidden:
        data["test_cases"] = list(problem.test_cases or [])
    return data


def serialize_contest(
        contest: Contest,
        *,
        now: datetime | None = None,
        is_registered: bool | None = None,
) -> dict:
    """比赛序列化：status 为存储状态，phase 按当前时间实时计算"""
    problem_count = getattr(contest, "problem_total", None)
    if problem_count is None:
        problem_count = contest.problems.count()
    data = {
        "id": contest.id,
        "slug": contest.slug,
        "title": contest.title,
        "description": contest.description,
        "community": getattr(contest.community, "slug", None),
        "contest_type": contest.contest_type,
        "status": contest.status,
        "phase": derive_phase(contest, now or timezone.now()),
        "registration_start": contest.registration_start,
        "registration_end": contest.registration_end,
        "start_time": contest.start_time,
        "end_time": contest.end_time,
        "max_participants": contest.max_participants,
        "participant_count": contest.participant_count,
        "rules": contest.rules,
        "problem_count": problem_count,
        "created_by": contest.created_by_id,
    }
    if is_registered is not None:
        data["is_registered"] = is_registered
    return data


def serialize_participant(participant: ContestParticipant) -> dict:
    user = participant.user
    return {
        "id": participant.id,
        "user_id": participant.user_id,
        "username": getattr(user, "username", None),
        "nickname": getattr(user, "display_name", None),
        "registered_at": participant.registered_at,
        "score": participant.score,
        "solved_problems": list(participant.solved_problems or []),
        "team_data": participant.team_data,
        "is_disqualified": participant.is_disqualified,
    }


def serialize_clarification(clarification: Clarification) -> dict:
    return {
        "id": clarification.id,
        "problem_index": clarification.problem_index,
        "question": clarification.question,
        "answer": clarification.answer,
        "is_public": clarification.is_public,
        "asked_by": clarification.asked_by_id,
        "asked_at": clarification.asked_at,
        "answered_at": clarification.answered_at,
    }


class ContestContextService:
    """
    比赛上下文辅助类，供各 Service 组合使用：
    - 读取比赛时做惰性状态同步（条件更新，并发安全）
    - 管理者判定、参赛者查询
    """

    def __init__(
            self,
            contest_repo: ContestRepo | None = None,
            participant_repo: ContestParticipantRepo | None = None,
            problem_repo: ProblemRepo | None = None,
    ):
        """仓储依赖注入：默认使用实际仓储，便于测试时替换"""
        self.contest_repo = contest_repo or ContestRepo()
        self.participant_repo = participant_repo or ContestParticipantRepo()
        self.problem_repo = problem_repo or ProblemRepo()

    def sync_status(self, contest: Contest, *, now: datetime | None = None) -> Contest:
        """
        按时钟对齐存储状态：已发布类 → active → completed，报名中 → 报名截止
        - 条件更新失败说明已被并发请求推进，重新读取后继续判断
        """
        now = now or timezone.now()
        for _ in range(3):
            target = expected_status(contest, now)
            if target is None:
                break
            previous = contest.status
            if self.contest_repo.compare_and_set_status(contest, expected=previous, target=target):
                logger.info(
                    "比赛状态自动同步",
                    extra=logger_extra({"contest": contest.slug, "from_status": previous, "to_status": target}),
                )
                broadcast_contest(contest.slug, {"event": "contest_status", "status": target})
            else:
                contest.refresh_from_db(fields=["status"])
        return contest

    def get_contest(self, slug: str) -> Contest:
        """根据 slug 获取比赛并同步状态"""
        return self.sync_status(self.contest_repo.get_by_slug(slug))

    def get_contest_for_update(self, slug: str) -> Contest:
        """行锁读取比赛（须在事务内调用），用于报名、状态流转等串行化操作"""
        return self.sync_status(self.contest_repo.lock_by_slug(slug))

    @staticmethod
    def ensure_privileged(user, contest: Contest, message: str | None = None) -> None:
        if not is_privileged(user, contest):
            raise PermissionDeniedError(message=message or "仅比赛管理者可以执行此操作")

    def get_participant(self, contest: Contest, user) -> Optional[ContestParticipant]:
        if user is None or not getattr(user, "is_authenticated", False):
            return None
        return self.participant_repo.get_for_user(contest, user.id)

    def require_participant(self, contest: Contest, user) -> ContestParticipant:
        participant = self.get_participant(contest, user)
        if participant is None:
            raise NotAParticipantError()
        return participant

    def list_problems(self, contest: Contest) -> list[Problem]:
        return list(self.problem_repo.list_for_contest(contest))


def _unique_slug(repo: ContestRepo, title: str, requested: str) -> str:
    """未指定 slug 时按标题生成，重名时递增后缀"""
    if requested:
        if repo.slug_exists(requested):
            raise ConflictError(message="比赛标识已存在")
        return requested
    base = slugify(title) or "contest"
    slug = base
    idx = 1
    while repo.slug_exists(slug):
        idx += 1
        slug = f"{base}-{idx}"
    return slug


def _ensure_has_problems(contest: Contest) -> None:
    if not contest.problems.exists():
        raise ValidationError(message="比赛至少需要一道题目")


class CreateContestService(BaseService[Contest]):
    """
    创建比赛：
    - 创建人需为导师/社区管理员/平台管理员，且属于该社区（平台管理员除外）
    - 初始状态为 draft，题目可稍后补充
    """

    def __init__(
            self,
            repo: ContestRepo | None = None,
            problem_repo: ProblemRepo | None = None,
            community_repo: CommunityRepo | None = None,
    ):
        self.repo = repo or ContestRepo()
        self.problem_repo = problem_repo or ProblemRepo()
        self.community_repo = community_repo or CommunityRepo()

    def validate(self, schema: ContestCreateSchema, user: User) -> None:
        ensure_role(user, CONTEST_MANAGER_ROLES, message="仅导师或管理员可以创建比赛")
        validate_schedule(schema.registration_start, schema.registration_end, schema.start_time, schema.end_time)

    def perform(self, schema: ContestCreateSchema, user: User) -> Contest:
        community = self.community_repo.get_by_slug(schema.community)
        if not is_platform_admin(user) and user.community_id != community.id and community.owner_id != user.id:
            raise PermissionDeniedError(message="只能在所属社区创建比赛")
        data = schema.to_dict(exclude={"problems", "community", "slug"}, exclude_none=True)
        data.update(
            {
                "slug": _unique_slug(self.repo, schema.title, schema.slug),
                "community": community,
                "created_by": user,
                "status": Contest.Status.DRAFT,
            }
        )
        contest = self.repo.create(data)
        if schema.problems:
            self.problem_repo.replace_for_contest(contest, schema.problems)
        self.community_repo.incr_contests(community.id)
        logger.info(
            "创建比赛",
            extra=logger_extra({"contest": contest.slug, "community": community.slug, "problems": len(schema.problems)}),
        )
        return contest


class ContestUpdateService(BaseService[Contest]):
    """
    更新比赛配置：
    - 已结束（completed）的比赛不可修改
    - 进行中或已有提交时不可修改题目
    - 合并后的时间窗口需满足先后顺序
    """

    def __init__(self, context: ContestContextService | None = None, problem_repo: ProblemRepo | None = None):
        self.context = context or ContestContextService()
        self.problem_repo = problem_repo or ProblemRepo()

    def perform(self, schema: ContestUpdateSchema, user: User) -> Contest:
        contest = self.context.get_contest_for_update(schema.contest_slug)
        self.context.ensure_privileged(user, contest)
        if contest.status == Contest.Status.COMPLETED:
            raise InvalidTransitionError(message="比赛已结束，无法修改")
        now = timezone.now()
        changes = dict(schema.changes)
        problems = changes.pop("problems", None)
        if schema.changes_problems:
            if derive_phase(contest, now) == ContestPhase.RUNNING.value:
                raise ImmutableDuringContestError(message="比赛进行中不能修改题目")
            if Submission.objects.filter(contest=contest).exists():
                raise ImmutableDuringContestError(message="比赛已有提交记录，不能修改题目")
        validate_schedule(
            changes.get("registration_start", contest.registration_start),
            changes.get("registration_end", contest.registration_end),
            changes.get("start_time", contest.start_time),
            changes.get("end_time", contest.end_time),
        )
        max_participants = changes.get("max_participants", contest.max_participants)
        if max_participants is not None and max_participants < self.context.participant_repo.count_for_contest(contest):
            raise ValidationError(message="人数上限不能小于已报名人数")
        self.context.contest_repo.update(contest, changes)
        if schema.changes_problems:
            self.problem_repo.replace_for_contest(contest, problems or [])
        LeaderboardService.invalidate(contest)
        logger.info(
            "更新比赛",
            extra=logger_extra({"contest": contest.slug, "fields": sorted(schema.changes.keys())}),
        )
        broadcast_contest(contest.slug, {"event": "contest_updated", "fields": sorted(schema.changes.keys())})
        return contest


class ContestDeleteService(BaseService[None]):
    """删除比赛：进行中的比赛不可删除"""

    def __init__(self, context: ContestContextService | None = None, community_repo: CommunityRepo | None = None):
        self.context = context or ContestContextService()
        self.community_repo = community_repo or CommunityRepo()

    def perform(self, slug: str, user: User) -> None:
        contest = self.context.get_contest_for_update(slug)
        self.context.ensure_privileged(user, contest)
        if derive_phase(contest, timezone.now()) == ContestPhase.RUNNING.value:
            raise CannotDeleteRunningContestError()
        community_id = contest.community_id
        LeaderboardService.invalidate(contest)
        self.context.contest_repo.delete(contest)
        self.community_repo.incr_contests(community_id, delta=-1)
        logger.info("删除比赛", extra=logger_extra({"contest": slug}))


# ------------------------
# 生命周期操作：ContestAction 每个成员对应一个处理类
# ------------------------


class TransitionHandler:
    """
    状态流转处理基类：
    - check：来源状态与业务前置条件校验，失败抛 BizError
    - apply：写入目标状态
    - after：通知 / 广播等副作用
    """

    action: ContestAction

    def __init__(self, context: ContestContextService):
        self.context = context

    @property
    def rule(self):
        return TRANSITIONS[self.action]

    def is_noop(self, contest: Contest) -> bool:
        return False

    def check(self, contest: Contest, now: datetime) -> None:
        if contest.status not in self.rule.sources:
            raise InvalidTransitionError(
                message=f"当前状态（{contest.get_status_display()}）不允许执行该操作",
                extra={"status": contest.status, "action": self.action.value},
            )

    def apply(self, contest: Contest) -> Contest:
        return self.context.contest_repo.update(contest, {"status": self.rule.target})

    def after(self, contest: Contest, actor: User) -> None:
        broadcast_contest(
            contest.slug,
            {"event": "contest_status", "status": contest.status, "action": self.action.value},
        )


TRANSITION_HANDLERS: dict[ContestAction, type[TransitionHandler]] = {}


def register_handler(cls: type[TransitionHandler]) -> type[TransitionHandler]:
    if cls.action in TRANSITION_HANDLERS:
        raise RuntimeError(f"重复注册的比赛操作：{cls.action}")
    TRANSITION_HANDLERS[cls.action] = cls
    return cls


def _notify_community_members(contest: Contest, *, type: str, title: str, body: str) -> None:
    user_ids = list(
        UserRepo()
        .filter(community_id=contest.community_id, is_active=True)
        .exclude(pk=contest.created_by_id)
        .values_list("id", flat=True)
    )
    if user_ids:
        fanout_notifications(
            user_ids,
            type=type,
            title=title,
            body=body,
            payload={"contest": contest.slug},
            contest=contest,
            dedup_key=build_dedup_key(type=type, contest=contest),
        )


def _notify_participants(contest: Contest, *, type: str, title: str, body: str = "") -> None:
    user_ids = list(
        ContestParticipantRepo().list_for_contest(contest, include_disqualified=False).values_list("user_id", flat=True)
    )
    if user_ids:
        fanout_notifications(
            user_ids,
            type=type,
            title=title,
            body=body,
            payload={"contest": contest.slug},
            contest=contest,
            dedup_key=build_dedup_key(type=type, contest=contest),
        )


@register_handler
class PublishHandler(TransitionHandler):
    action = ContestAction.PUBLISH

    def check(self, contest: Contest, now: datetime) -> None:
        super().check(contest, now)
        validate_schedule(contest.registration_start, contest.registration_end, contest.start_time, contest.end_time)
        _ensure_has_problems(contest)

    def after(self, contest: Contest, actor: User) -> None:
        super().after(contest, actor)
        _notify_community_members(
            contest,
            type=Notification.Type.CONTEST_NEW,
            title=f"新比赛发布：{contest.title}",
            body=f"报名时间：{contest.registration_start:%Y-%m-%d %H:%M} 起",
        )


@register_handler
class OpenRegistrationHandler(TransitionHandler):
    action = ContestAction.OPEN_REGISTRATION

    def check(self, contest: Contest, now: datetime) -> None:
        super().check(contest, now)
        validate_schedule(contest.registration_start, contest.registration_end, contest.start_time, contest.end_time)
        _ensure_has_problems(contest)

    def after(self, contest: Contest, actor: User) -> None:
        super().after(contest, actor)
        _notify_community_members(
            contest,
            type=Notification.Type.CONTEST_REG_OPEN,
            title=f"{contest.title} 报名开启",
            body=f"报名截止：{contest.registration_end:%Y-%m-%d %H:%M}",
        )


@register_handler
class CloseRegistrationHandler(TransitionHandler):
    action = ContestAction.CLOSE_REGISTRATION


@register_handler
class StartHandler(TransitionHandler):
    """开赛：不允许提前手动开赛，也不允许在结束时间之后开赛"""

    action = ContestAction.START

    def check(self, contest: Contest, now: datetime) -> None:
        super().check(contest, now)
        if now < contest.start_time:
            raise InvalidTransitionError(message="未到比赛开始时间，不能提前开赛")
        if now >= contest.end_time:
            raise InvalidTransitionError(message="比赛时间已过，不能开赛")
        _ensure_has_problems(contest)

    def after(self, contest: Contest, actor: User) -> None:
        super().after(contest, actor)
        _notify_participants(contest, type=Notification.Type.CONTEST_STARTED, title=f"{contest.title} 已开赛")


@register_handler
class CompleteHandler(TransitionHandler):
    """结赛：重复结赛为幂等空操作"""

    action = ContestAction.COMPLETE

    def is_noop(self, contest: Contest) -> bool:
        return contest.status == Contest.Status.COMPLETED

    def after(self, contest: Contest, actor: User) -> None:
        super().after(contest, actor)
        LeaderboardService.invalidate(contest)
        _notify_participants(contest, type=Notification.Type.CONTEST_ENDED, title=f"{contest.title} 已结束")


@register_handler
class CancelHandler(TransitionHandler):
    """取消：除已结束/已取消外的任意状态均可取消，包括进行中的比赛"""

    action = ContestAction.CANCEL

    def after(self, contest: Contest, actor: User) -> None:
        super().after(contest, actor)
        _notify_participants(contest, type=Notification.Type.CONTEST_CANCELLED, title=f"{contest.title} 已取消")


class ContestTransitionService(BaseService[Contest]):
    """按 ContestAction 分派到对应处理类，统一加锁、同步状态与记录日志"""

    def __init__(self, context: ContestContextService | None = None):
        self.context = context or ContestContextService()

    @staticmethod
    def parse_action(raw: str) -> ContestAction:
        try:
            return ContestAction(raw)
        except ValueError as exc:
            raise ValidationError(
                message="不支持的比赛操作",
                extra={"allowed": [a.value for a in ContestAction]},
            ) from exc

    def perform(self, slug: str, action: ContestAction | str, user: User) -> Contest:
        action = action if isinstance(action, ContestAction) else self.parse_action(action)
        contest = self.context.get_contest_for_update(slug)
        self.context.ensure_privileged(user, contest)
        handler = TRANSITION_HANDLERS[action](self.context)
        if handler.is_noop(contest):
            return contest
        previous = contest.status
        handler.check(contest, timezone.now())
        handler.apply(contest)
        logger.info(
            "比赛状态流转",
            extra=logger_extra(
                {"contest": contest.slug, "action": action.value, "from_status": previous, "to_status": contest.status}
            ),
        )
        handler.after(contest, user)
        return contest


# ------------------------
# 报名
# ------------------------


class ContestRegistrationService(BaseService[ContestParticipant]):
    """
    报名参赛：
    - 锁住比赛行串行化同一比赛的报名，(contest, user) 唯一约束兜底
    - 校验顺序：比赛存在 → 报名窗口 → 重复报名 → 名额
    """

    def __init__(
            self,
            context: ContestContextService | None = None,
            directory: UserDirectory | None = None,
            community_repo: CommunityRepo | None = None,
    ):
        self.context = context or ContestContextService()
        self.directory = directory or UserDirectory()
        self.community_repo = community_repo or CommunityRepo()

    def perform(self, schema: RegistrationSchema, user: User) -> ContestParticipant:
        contest = self.context.get_contest_for_update(schema.contest_slug)
        info = self.directory.get_user(user.id)
        if is_privileged(user, contest):
            raise PermissionDeniedError(message="比赛管理者不能报名参赛")
        if info.role == ROLE_STUDENT and info.community_id != contest.community_id:
            raise PermissionDeniedError(message="只能报名所属社区的比赛")
        now = timezone.now()
        if contest.status not in REGISTRATION_STATUSES or not (
                contest.registration_start <= now <= contest.registration_end
        ):
            raise RegistrationClosedError()
        participant_repo = self.context.participant_repo
        if participant_repo.get_for_user(contest, user.id) is not None:
            raise AlreadyRegisteredError()
        if contest.max_participants is not None and (
                participant_repo.count_for_contest(contest) >= contest.max_participants
        ):
            raise CapacityExceededError()
        if contest.contest_type == Contest.ContestType.TEAM and not schema.team_data:
            raise ValidationError(message="团队赛报名需填写队伍信息")
        try:
            with transaction.atomic():
                participant = participant_repo.create(
                    {"contest": contest, "user": user, "registered_at": now, "team_data": schema.team_data}
                )
        except IntegrityError as exc:
            raise AlreadyRegisteredError() from exc
        self.context.contest_repo.incr_participants(contest.id)
        self.community_repo.incr_participations(contest.community_id)
        LeaderboardService.invalidate(contest)
        logger.info("报名成功", extra=logger_extra({"contest": contest.slug, "user_id": user.id}))
        create_and_push_notification(
            user.id,
            type=Notification.Type.CONTEST_REG_SUCCESS,
            title=f"已报名 {contest.title}",
            body=f"开赛时间：{contest.start_time:%Y-%m-%d %H:%M}",
            payload={"contest": contest.slug},
            contest=contest,
            dedup_key=build_dedup_key(type=Notification.Type.CONTEST_REG_SUCCESS, contest=contest),
        )
        return participant


class ContestLeaveService(BaseService[None]):
    """退赛：仅允许在比赛开始前退出，开赛后不可退赛"""

    def __init__(self, context: ContestContextService | None = None, community_repo: CommunityRepo | None = None):
        self.context = context or ContestContextService()
        self.community_repo = community_repo or CommunityRepo()

    def perform(self, slug: str, user: User) -> None:
        contest = self.context.get_contest_for_update(slug)
        participant = self.context.require_participant(contest, user)
        if derive_phase(contest, timezone.now()) != ContestPhase.UPCOMING.value:
            raise InvalidTransitionError(message="比赛已开始或已结束，不能退赛")
        self.context.participant_repo.delete(participant)
        self.context.contest_repo.incr_participants(contest.id, delta=-1)
        self.community_repo.incr_participations(contest.community_id, delta=-1)
        LeaderboardService.invalidate(contest)
        logger.info("退出比赛", extra=logger_extra({"contest": contest.slug, "user_id": user.id}))


class ContestDisqualifyService(BaseService[ContestParticipant]):
    """取消参赛资格：仅比赛管理者；被取消者不能提交且不进入排行榜"""

    def __init__(self, context: ContestContextService | None = None):
        self.context = context or ContestContextService()

    def perform(self, slug: str, actor: User, user_id: int) -> ContestParticipant:
        contest = self.context.get_contest(slug)
        self.context.ensure_privileged(actor, contest)
        participant = self.context.participant_repo.lock_for_user(contest, user_id)
        if participant.is_disqualified:
            return participant
        self.context.participant_repo.update(participant, {"is_disqualified": True})
        LeaderboardService.invalidate(contest)
        logger.info(
            "取消参赛资格",
            extra=logger_extra({"contest": contest.slug, "user_id": user_id, "actor_id": actor.id}),
        )
        create_and_push_notification(
            user_id,
            type=Notification.Type.CONTEST_DISQUALIFIED,
            title=f"{contest.title} 参赛资格已被取消",
            payload={"contest": contest.slug},
            contest=contest,
        )
        broadcast_contest(contest.slug, {"event": "leaderboard_updated"})
        return participant


# ------------------------
# 答疑
# ------------------------


class ClarificationAskService(BaseService[Clarification]):
    """参赛者提问：比赛未结束且允许答疑"""

    def __init__(self, context: ContestContextService | None = None, repo: ClarificationRepo | None = None):
        self.context = context or ContestContextService()
        self.repo = repo or ClarificationRepo()

    def perform(self, schema: ClarificationAskSchema, user: User) -> Clarification:
        contest = self.context.get_contest(schema.contest_slug)
        if not contest.allow_clarifications:
            raise ClarificationsDisabledError()
        if derive_phase(contest, timezone.now()) == ContestPhase.ENDED.value:
            raise ContestError(message="比赛已结束，无法提问")
        self.context.require_participant(contest, user)
        if schema.problem_index is not None and not contest.problems.filter(index=schema.problem_index).exists():
            raise InvalidProblemIndexError()
        clarification = self.repo.create(
            {
                "contest": contest,
                "asked_by": user,
                "problem_index": schema.problem_index,
                "question": schema.question,
            }
        )
        logger.info("答疑提问", extra=logger_extra({"contest": contest.slug, "clarification_id": clarification.id}))
        return clarification


class ClarificationAnswerService(BaseService[Clarification]):
    """管理者回复答疑，可选择公开"""

    def __init__(self, context: ContestContextService | None = None, repo: ClarificationRepo | None = None):
        self.context = context or ContestContextService()
        self.repo = repo or ClarificationRepo()

    def perform(self, schema: ClarificationAnswerSchema, user: User) -> Clarification:
        contest = self.context.get_contest(schema.contest_slug)
        self.context.ensure_privileged(user, contest)
        clarification = self.repo.get_or_raise(pk=schema.clarification_id, contest=contest)
        self.repo.answer(
            clarification,
            answer=schema.answer,
            is_public=schema.is_public,
            actor_id=user.id,
            at=timezone.now(),
        )
        create_and_push_notification(
            clarification.asked_by_id,
            type=Notification.Type.CLARIFICATION_ANSWERED,
            title=f"{contest.title} 的提问已回复",
            body=schema.answer[:200],
            payload={"contest": contest.slug, "clarification_id": clarification.id},
            contest=contest,
            dedup_key=build_dedup_key(
                type=Notification.Type.CLARIFICATION_ANSWERED, contest=contest, extra=str(clarification.id)
            ),
        )
        if clarification.is_public:
            broadcast_contest(contest.slug, {"event": "clarification", "id": clarification.id})
        return clarification


class ClarificationListService(BaseService[list]):
    atomic_enabled = False

    def __init__(self, context: ContestContextService | None = None, repo: ClarificationRepo | None = None):
        self.context = context or ContestContextService()
        self.repo = repo or ClarificationRepo()

    def perform(self, slug: str, user) -> list[Clarification]:
        contest = self.context.get_contest(slug)
        user_id = user.id if getattr(user, "is_authenticated", False) else None
        return list(self.repo.list_visible(contest, user_id=user_id, privileged=is_privileged(user, contest)))


# ------------------------
# 统计
# ------------------------


class ContestStatsService(BaseService[dict]):
    """
    比赛统计：参赛人数、提交数、通过数、平均分、完成率与逐题统计
    - 只统计已判题的提交（pending 不计入）
    """

    atomic_enabled = False

    def __init__(self, context: ContestContextService | None = None):
        self.context = context or ContestContextService()

    def perform(self, slug: str) -> dict:
        contest = self.context.get_contest(slug)
        participants = self.context.participant_repo.filter(contest=contest)
        total_participants = participants.count()
        solved_participants = (
            Submission.objects.filter(contest=contest, status=Submission.Status.ACCEPTED)
            .values("participant_id")
            .distinct()
            .count()
        )
        average_score = participants.aggregate(avg=Avg("score"))["avg"] or 0
        judged = Submission.objects.filter(contest=contest).exclude(status=Submission.Status.PENDING)
        per_problem = {
            row["problem_index"]: row
            for row in judged.values("problem_index").annotate(
                submissions=Count("id"),
                accepted=Count("id", filter=Q(status=Submission.Status.ACCEPTED)),
                average_score=Avg("score"),
            )
        }
        problems = []
        for problem in self.context.list_problems(contest):
            row = per_problem.get(problem.index, {})
            submissions = row.get("submissions", 0)
            accepted = row.get("accepted", 0)
            problems.append(
                {
                    "index": problem.index,
                    "title": problem.title,
                    "points": problem.points,
                    "submissions": submissions,
                    "accepted": accepted,
                    "acceptance_rate": round(accepted / submissions, 4) if submissions else 0,
                    "average_score": round(row.get("average_score") or 0, 2),
                }
            )
        total_submissions = judged.count()
        return {
            "contest": contest.slug,
            "phase": derive_phase(contest, timezone.now()),
            "total_participants": total_participants,
            "total_submissions": total_submissions,
            "accepted_submissions": judged.filter(status=Submission.Status.ACCEPTED).count(),
            "average_score": round(average_score, 2),
            "completion_rate": round(solved_participants / total_participants, 4) if total_participants else 0,
            "problems": problems,
        }
