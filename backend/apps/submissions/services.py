from __future__ import annotations

from typing import Optional

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    AttemptsExceededError,
    ContestNotRunningError,
    EvaluatorUnavailableError,
    InvalidProblemIndexError,
    ParticipantDisqualifiedError,
    ValidationError,
)
from apps.common.infra.logger import get_logger, logger_extra
from apps.common.ws_utils import broadcast_contest
from apps.contests.leaderboard import LeaderboardService
from apps.contests.lifecycle import ContestPhase, derive_phase
from apps.contests.permissions import is_privileged
from apps.contests.services import ContestContextService
from apps.notifications.models import Notification
from apps.notifications.services import build_dedup_key, create_and_push_notification

from .evaluators import BaseEvaluator, EvaluationResult, get_evaluator
from .models import Submission
from .repo import SubmissionRepo
from .schemas import SubmissionCreateSchema
from .scoring import score_submission, solved_indices, summarize, total_score

# 服务层：处理代码提交、调用评测服务并重算参赛者聚合分数

logger = get_logger(__name__)


def serialize_submission(submission: Submission, *, include_code: bool = True) -> dict:
    """提交记录序列化：返回判题状态、得分与用例统计"""
    data = {
        "id": submission.id,
        "contest": getattr(submission.contest, "slug", None),
        "user_id": submission.user_id,
        "username": getattr(submission.user, "username", None),
        "problem_index": submission.problem_index,
        "language": submission.language,
        "status": submission.status,
        "score": submission.score,
        "test_cases_passed": submission.test_cases_passed,
        "total_test_cases": submission.total_test_cases,
        "execution_time_ms": submission.execution_time_ms,
        "memory_kb": submission.memory_kb,
        "message": submission.message,
        "submitted_at": submission.submitted_at,
        "judged_at": submission.judged_at,
    }
    if include_code:
        data["code"] = submission.code
    return data


class SubmissionService(BaseService[Submission]):
    """
    代码提交服务：
    - 校验顺序：比赛进行中 → 参赛资格 → 题号 → 语言 → 提交次数
    - 在参赛者行锁内校验提交次数并落库 pending 提交，提交事务后再调用评测服务
    - 评测结果与参赛者分数在同一事务内写入，参赛者行加锁后由提交日志重算
    - 评测服务不可用时撤回该 pending 提交，不占用提交次数
    """

    atomic_enabled = False  # pending 提交需先提交事务，评测不占用数据库锁

    def __init__(
            self,
            evaluator: BaseEvaluator | None = None,
            context: ContestContextService | None = None,
            repo: SubmissionRepo | None = None,
    ):
        self._evaluator = evaluator
        self.context = context or ContestContextService()
        self.repo = repo or SubmissionRepo()

    @property
    def evaluator(self) -> BaseEvaluator:
        # 延迟实例化，允许测试中通过 override_settings 切换实现
        if self._evaluator is None:
            return get_evaluator()
        return self._evaluator

    def perform(self, schema: SubmissionCreateSchema, user: User) -> Submission:
        contest = self.context.get_contest(schema.contest_slug)
        if derive_phase(contest, timezone.now()) != ContestPhase.RUNNING.value:
            raise ContestNotRunningError()
        participant = self.context.require_participant(contest, user)
        if participant.is_disqualified:
            raise ParticipantDisqualifiedError()
        problem = self.context.problem_repo.get_by_index(contest, schema.problem_index)
        if problem is None:
            raise InvalidProblemIndexError()
        if contest.allowed_languages and schema.language not in contest.allowed_languages:
            raise ValidationError(
                message="该比赛不支持此编程语言",
                extra={"allowed_languages": list(contest.allowed_languages)},
            )
        # 次数校验与落库需在参赛者行锁内完成，并发提交按顺序计数
        with transaction.atomic():
            self.context.participant_repo.lock_for_user(contest, user.id)
            if contest.max_attempts is not None and (
                    self.repo.count_attempts(participant.id, problem.index) >= contest.max_attempts
            ):
                raise AttemptsExceededError(extra={"max_attempts": contest.max_attempts})
            submission = self.repo.create(
                {
                    "contest": contest,
                    "participant": participant,
                    "user": user,
                    "problem": problem,
                    "problem_index": problem.index,
                    "language": schema.language,
                    "code": schema.code,
                    "status": Submission.Status.PENDING,
                }
            )

        try:
            result = self.evaluator.evaluate(problem, schema.language, schema.code)
        except EvaluatorUnavailableError:
            # 未拿到判题结果的提交不计入次数，撤回后允许重新提交
            self.repo.delete(submission)
            logger.warning(
                "评测服务不可用，已撤回本次提交",
                extra=logger_extra({"contest": contest.slug, "user_id": user.id, "problem_index": problem.index}),
            )
            raise
        self._record_verdict(submission, result)
        LeaderboardService.invalidate(contest)
        broadcast_contest(
            contest.slug,
            {"event": "leaderboard_updated", "updated_at": timezone.now().isoformat()},
        )
        create_and_push_notification(
            user.id,
            type=Notification.Type.SUBMISSION_RESULT,
            title=f"{contest.title} 第 {problem.index + 1} 题判题完成：{submission.get_status_display()}",
            body=submission.message,
            payload={
                "contest": contest.slug,
                "submission_id": submission.id,
                "status": submission.status,
                "score": submission.score,
            },
            contest=contest,
            dedup_key=build_dedup_key(
                type=Notification.Type.SUBMISSION_RESULT, contest=contest, extra=str(submission.id)
            ),
        )
        logger.info(
            "判题完成",
            extra=logger_extra(
                {
                    "submission_id": submission.id,
                    "contest": contest.slug,
                    "user_id": user.id,
                    "problem_index": problem.index,
                    "status": submission.status,
                    "score": submission.score,
                }
            ),
        )
        return submission

    def _record_verdict(self, submission: Submission, result: EvaluationResult) -> None:
        """写入判题结果并重算参赛者总分与已解题目"""
        contest = submission.contest
        status, score = score_submission(
            submission.problem,
            contest.scoring_mode,
            result.status,
            result.test_cases_passed,
            result.total_test_cases,
        )
        with transaction.atomic():
            participant = self.context.participant_repo.lock_for_user(contest, submission.user_id)
            self.repo.update(
                submission,
                {
                    "status": status,
                    "score": score,
                    "test_cases_passed": result.test_cases_passed,
                    "total_test_cases": result.total_test_cases,
                    "execution_time_ms": result.execution_time_ms,
                    "memory_kb": result.memory_kb,
                    "message": result.message,
                    "judged_at": timezone.now(),
                },
            )
            results = summarize(self.repo.log_for_participant(participant.id))
            self.context.participant_repo.update(
                participant,
                {"score": total_score(results), "solved_problems": solved_indices(results)},
            )


class SubmissionListService(BaseService[QuerySet]):
    """提交列表：参赛者只看自己的提交，比赛管理者可看全部"""

    atomic_enabled = False

    def __init__(self, context: ContestContextService | None = None, repo: SubmissionRepo | None = None):
        self.context = context or ContestContextService()
        self.repo = repo or SubmissionRepo()

    def perform(self, slug: str, user: User, *, problem_index: Optional[int] = None) -> QuerySet[Submission]:
        contest = self.context.get_contest(slug)
        if is_privileged(user, contest):
            return self.repo.list_for_contest(contest.id, problem_index=problem_index)
        self.context.require_participant(contest, user)
        return self.repo.list_for_contest(contest.id, user_id=user.id, problem_index=problem_index)
