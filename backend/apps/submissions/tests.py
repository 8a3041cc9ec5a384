from __future__ import annotations

from datetime import timedelta
from unittest import mock

import requests
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.exceptions import (
    AttemptsExceededError,
    ContestNotRunningError,
    EvaluatorUnavailableError,
    InvalidProblemIndexError,
    NotAParticipantError,
    ParticipantDisqualifiedError,
    ValidationError,
)
from apps.common.tests_utils import (
    AuthenticatedAPIMixin,
    make_community,
    make_contest,
    make_participant,
    make_user,
)
from apps.contests.models import Contest, Problem
from apps.contests.repo import ContestParticipantRepo
from apps.notifications.models import Notification

from .evaluators import BaseEvaluator, EvaluationResult, HttpJudgeEvaluator, get_evaluator
from .models import Submission
from .schemas import SubmissionCreateSchema
from .scoring import score_submission, summarize, total_score
from .services import SubmissionService


class ScriptedEvaluator(BaseEvaluator):
    """按顺序返回预设的判题结果"""

    def __init__(self, *results: EvaluationResult):
        self.results = list(results)
        self.calls = 0

    def evaluate(self, problem, language, code):
        self.calls += 1
        return self.results.pop(0)


class AcceptingEvaluator(BaseEvaluator):
    """接口测试使用：全部通过"""

    def evaluate(self, problem, language, code):
        total = len(problem.test_cases or [])
        return EvaluationResult(status=Submission.Status.ACCEPTED, test_cases_passed=total, total_test_cases=total,
                                execution_time_ms=12, memory_kb=2048)


class BrokenEvaluator(BaseEvaluator):
    def evaluate(self, problem, language, code):
        raise EvaluatorUnavailableError()


AC = EvaluationResult(status=Submission.Status.ACCEPTED, test_cases_passed=4, total_test_cases=4)
WA = EvaluationResult(status=Submission.Status.WRONG_ANSWER, test_cases_passed=2, total_test_cases=4)


class ScoringTests(SimpleTestCase):
    """计分规则：满分、部分分与最佳得分"""

    def setUp(self) -> None:
        self.problem = Problem(index=0, title="A", points=10)

    def test_accepted_gets_full_points(self):
        self.assertEqual(score_submission(self.problem, Contest.ScoringMode.ALL_OR_NOTHING, "accepted", 4, 4),
                         ("accepted", 10.0))

    def test_partial_mode(self):
        self.assertEqual(score_submission(self.problem, Contest.ScoringMode.PARTIAL, "wrong_answer", 1, 3),
                         ("partial", 3.33))
        # 一个用例都没过仍为原状态
        self.assertEqual(score_submission(self.problem, Contest.ScoringMode.PARTIAL, "wrong_answer", 0, 3),
                         ("wrong_answer", 0.0))
        self.assertEqual(score_submission(self.problem, Contest.ScoringMode.ALL_OR_NOTHING, "wrong_answer", 1, 3),
                         ("wrong_answer", 0.0))

    def test_summarize_keeps_best_and_skips_pending(self):
        now = timezone.now()
        rows = [
            Submission(problem_index=0, status="partial", score=5, submitted_at=now),
            Submission(problem_index=0, status="pending", score=0, submitted_at=now + timedelta(seconds=1)),
            Submission(problem_index=0, status="wrong_answer", score=0, submitted_at=now + timedelta(seconds=2)),
        ]
        results = summarize(rows)
        self.assertEqual(results[0].score, 5)
        self.assertEqual(results[0].attempts, 2)
        self.assertEqual(results[0].solved_at, now)
        self.assertEqual(total_score(summarize(rows, cutoff=now - timedelta(seconds=1))), 0)


class SubmissionServiceTests(TestCase):
    """服务层单测：校验顺序、判题结果写入与分数重算"""

    def setUp(self) -> None:
        now = timezone.now()
        self.community = make_community("lab")
        self.mentor = make_user("mentor", role=User.Role.MENTOR, community=self.community)
        self.alice = make_user("alice", community=self.community)
        self.contest = make_contest(self.community, self.mentor, status=Contest.Status.ACTIVE,
                                    start=now - timedelta(minutes=30))
        self.participant = make_participant(self.contest, self.alice)

    def _submit(self, evaluator: BaseEvaluator, *, index: int = 0, language: str = "Python",
                user: User | None = None) -> Submission:
        schema = SubmissionCreateSchema(
            contest_slug=self.contest.slug, problem_index=index, language=language, code="print(input())"
        )
        return SubmissionService(evaluator=evaluator).execute(schema, user or self.alice)

    def test_best_score_is_kept(self):
        evaluator = ScriptedEvaluator(WA, AC, WA)
        statuses = [self._submit(evaluator).status for _ in range(3)]
        self.assertEqual(statuses, ["wrong_answer", "accepted", "wrong_answer"])
        self.participant.refresh_from_db()
        self.assertEqual(self.participant.score, 10)
        self.assertEqual(self.participant.solved_problems, [0])
        self.assertEqual(Submission.objects.filter(participant=self.participant).count(), 3)

    def test_partial_scoring(self):
        Contest.objects.filter(pk=self.contest.pk).update(scoring_mode=Contest.ScoringMode.PARTIAL)
        submission = self._submit(ScriptedEvaluator(WA))
        self.assertEqual(submission.status, Submission.Status.PARTIAL)
        self.assertEqual(submission.score, 5)
        self.participant.refresh_from_db()
        self.assertEqual(self.participant.score, 5)
        self.assertEqual(self.participant.solved_problems, [])

    def test_language_is_normalized_and_checked(self):
        Contest.objects.filter(pk=self.contest.pk).update(allowed_languages=["python"])
        self.assertEqual(self._submit(ScriptedEvaluator(AC)).language, "python")
        with self.assertRaises(ValidationError):
            self._submit(ScriptedEvaluator(AC), language="cpp")

    def test_attempt_limit(self):
        Contest.objects.filter(pk=self.contest.pk).update(max_attempts=2)
        evaluator = ScriptedEvaluator(WA, WA, AC)
        self._submit(evaluator)
        self._submit(evaluator)
        with self.assertRaises(AttemptsExceededError) as ctx:
            self._submit(evaluator)
        self.assertEqual(ctx.exception.code, 46202)
        self.assertEqual(evaluator.calls, 2)
        # 其他题目不受影响
        self._submit(evaluator, index=1)

    def test_invalid_problem_index(self):
        with self.assertRaises(InvalidProblemIndexError):
            self._submit(ScriptedEvaluator(AC), index=7)

    def test_contest_not_running(self):
        upcoming = make_contest(self.community, self.mentor, slug="later", status=Contest.Status.PUBLISHED)
        make_participant(upcoming, self.alice)
        schema = SubmissionCreateSchema(contest_slug=upcoming.slug, problem_index=0, language="python", code="x")
        with self.assertRaises(ContestNotRunningError):
            SubmissionService(evaluator=ScriptedEvaluator(AC)).execute(schema, self.alice)
        self.assertFalse(Submission.objects.filter(contest=upcoming).exists())

    def test_requires_participant(self):
        bob = make_user("bob", community=self.community)
        with self.assertRaises(NotAParticipantError):
            self._submit(ScriptedEvaluator(AC), user=bob)

    def test_disqualified_participant(self):
        self.participant.is_disqualified = True
        self.participant.save(update_fields=["is_disqualified"])
        with self.assertRaises(ParticipantDisqualifiedError):
            self._submit(ScriptedEvaluator(AC))

    def test_evaluator_unavailable_releases_attempt(self):
        Contest.objects.filter(pk=self.contest.pk).update(max_attempts=1)
        with self.assertRaises(EvaluatorUnavailableError):
            self._submit(BrokenEvaluator())
        self.assertFalse(Submission.objects.filter(participant=self.participant).exists())
        self.participant.refresh_from_db()
        self.assertEqual(self.participant.score, 0)
        # 判题服务恢复后仍可使用唯一的一次提交机会
        self.assertEqual(self._submit(ScriptedEvaluator(AC)).status, Submission.Status.ACCEPTED)
        with self.assertRaises(AttemptsExceededError):
            self._submit(ScriptedEvaluator(AC))

    def test_attempt_check_runs_under_participant_lock(self):
        Contest.objects.filter(pk=self.contest.pk).update(max_attempts=1)
        original = ContestParticipantRepo.lock_for_user
        seen: list[int] = []

        def record_lock(repo, contest, user_id):
            seen.append(Submission.objects.filter(participant=self.participant).count())
            return original(repo, contest, user_id)

        with mock.patch.object(ContestParticipantRepo, "lock_for_user", autospec=True, side_effect=record_lock):
            self._submit(ScriptedEvaluator(WA))
        # 第一次加锁发生在落库之前，第二次用于写入判题结果
        self.assertEqual(seen, [0, 1])

    def test_result_notification(self):
        submission = self._submit(ScriptedEvaluator(AC))
        notif = Notification.objects.get(user=self.alice, type=Notification.Type.SUBMISSION_RESULT)
        self.assertEqual(notif.payload["submission_id"], submission.id)
        self.assertEqual(notif.payload["status"], Submission.Status.ACCEPTED)

    def test_schema_validation(self):
        with self.assertRaises(ValidationError):
            SubmissionCreateSchema(contest_slug="x", problem_index=-1, language="python", code="x")
        with self.assertRaises(ValidationError):
            SubmissionCreateSchema(contest_slug="x", problem_index="a", language="python", code="x")
        with self.assertRaises(ValidationError):
            SubmissionCreateSchema(contest_slug="x", problem_index=0, language="python", code="   ")


class HttpJudgeEvaluatorTests(SimpleTestCase):
    """HTTP 评测客户端：超时、不可达与返回格式"""

    def setUp(self) -> None:
        self.problem = Problem(index=0, title="A", points=10, test_cases=[{"input": "1", "output": "1"}] * 3)
        self.evaluator = HttpJudgeEvaluator(url="http://judge.local/run", token="t0ken", timeout=2)

    @staticmethod
    def _response(status_code: int, payload=None):
        resp = mock.Mock(status_code=status_code)
        resp.json.return_value = payload
        return resp

    @mock.patch("apps.submissions.evaluators.requests.post")
    def test_parses_result(self, post):
        post.return_value = self._response(
            200,
            {"status": "wrong_answer", "test_cases_passed": 2, "total_test_cases": 3, "execution_time_ms": 40},
        )
        result = self.evaluator.evaluate(self.problem, "python", "print(1)")
        self.assertEqual(result.status, Submission.Status.WRONG_ANSWER)
        self.assertEqual((result.test_cases_passed, result.total_test_cases), (2, 3))
        _, kwargs = post.call_args
        self.assertEqual(kwargs["timeout"], 2)
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer t0ken")
        self.assertEqual(kwargs["json"]["source"], "print(1)")

    @mock.patch("apps.submissions.evaluators.requests.post", side_effect=requests.Timeout)
    def test_timeout_is_time_limit_exceeded(self, _post):
        result = self.evaluator.evaluate(self.problem, "python", "while True: pass")
        self.assertEqual(result.status, Submission.Status.TIME_LIMIT_EXCEEDED)
        self.assertEqual(result.total_test_cases, 3)

    @mock.patch("apps.submissions.evaluators.requests.post", side_effect=requests.ConnectionError)
    def test_unreachable(self, _post):
        with self.assertRaises(EvaluatorUnavailableError):
            self.evaluator.evaluate(self.problem, "python", "x")

    @mock.patch("apps.submissions.evaluators.requests.post")
    def test_bad_responses(self, post):
        post.return_value = self._response(502)
        with self.assertRaises(EvaluatorUnavailableError):
            self.evaluator.evaluate(self.problem, "python", "x")
        post.return_value = self._response(200, {"status": "partial"})
        with self.assertRaises(EvaluatorUnavailableError):
            self.evaluator.evaluate(self.problem, "python", "x")
        post.return_value = self._response(200, {"verdict": "ok"})
        with self.assertRaises(EvaluatorUnavailableError):
            self.evaluator.evaluate(self.problem, "python", "x")

    @override_settings(CODE_EVALUATOR_URL="")
    def test_missing_url(self):
        with self.assertRaises(EvaluatorUnavailableError):
            HttpJudgeEvaluator().evaluate(self.problem, "python", "x")

    @override_settings(CODE_EVALUATOR_CLASS="apps.submissions.tests.AcceptingEvaluator")
    def test_get_evaluator_from_settings(self):
        self.assertIsInstance(get_evaluator(), AcceptingEvaluator)


@override_settings(CODE_EVALUATOR_CLASS="apps.submissions.tests.AcceptingEvaluator")
class SubmissionAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """提交接口冒烟：提交、列表可见范围"""

    @classmethod
    def setUpTestData(cls):
        cls.community = make_community("lab")
        cls.mentor = make_user("mentor", role=User.Role.MENTOR, community=cls.community)
        cls.alice = make_user("alice", community=cls.community)
        cls.bob = make_user("bob", community=cls.community)
        cls.contest = make_contest(cls.community, cls.mentor, slug="live", status=Contest.Status.ACTIVE,
                                   start=timezone.now() - timedelta(minutes=30))
        make_participant(cls.contest, cls.alice)
        make_participant(cls.contest, cls.bob)

    def setUp(self):
        cache.clear()

    def _post(self, user: User, index: int = 0):
        return self.auth_client(user).post(
            "/api/contests/live/submissions/",
            {"problem_index": index, "language": "python", "code": "print(1)"},
            format="json",
        )

    def test_submit_and_list(self):
        resp = self._post(self.alice)
        self.assertEqual(resp.status_code, 201, resp.content)
        submission = resp.data["data"]["submission"]
        self.assertEqual(submission["status"], Submission.Status.ACCEPTED)
        self.assertEqual(submission["score"], 10)
        self._post(self.bob, index=1)

        resp = self.auth_client(self.alice).get("/api/contests/live/submissions/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([s["user_id"] for s in resp.data["data"]], [self.alice.id])

        resp = self.auth_client(self.mentor).get("/api/contests/live/submissions/", {"problem_index": 1})
        self.assertEqual([s["user_id"] for s in resp.data["data"]], [self.bob.id])

        board = self.client.get("/api/contests/live/leaderboard/").data["data"]["entries"]
        self.assertEqual([(e["username"], e["total_score"]) for e in board], [("alice", 10), ("bob", 10)])

    def test_outsider_cannot_submit_or_list(self):
        carol = make_user("carol", community=self.community)
        self.assertBizError(self._post(carol), 403, 46104)
        self.assertBizError(self.auth_client(carol).get("/api/contests/live/submissions/"), 403, 46104)

    def test_missing_fields(self):
        resp = self.auth_client(self.alice).post("/api/contests/live/submissions/", {"code": "x"}, format="json")
        self.assertBizError(resp, 400, 40002)

    @override_settings(CODE_EVALUATOR_CLASS="apps.submissions.tests.BrokenEvaluator")
    def test_evaluator_down_returns_503(self):
        self.assertBizError(self._post(self.alice), 503, 50305)
        self.assertFalse(Submission.objects.filter(user=self.alice).exists())
