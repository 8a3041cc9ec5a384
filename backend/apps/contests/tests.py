from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.core.cache import cache
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.base.base_service import BaseService
from apps.common.exceptions import (
    AlreadyRegisteredError,
    CannotDeleteRunningContestError,
    CapacityExceededError,
    ClarificationsDisabledError,
    ImmutableDuringContestError,
    InvalidTransitionError,
    NotAParticipantError,
    PermissionDeniedError,
    RegistrationClosedError,
    ValidationError,
)
from apps.common.tests_utils import (
    AuthenticatedAPIMixin,
    make_community,
    make_contest,
    make_participant,
    make_user,
)
from apps.common.utils.redis_keys import leaderboard_key
from apps.notifications.models import Notification
from apps.submissions.models import Submission

from .leaderboard import VIEW_FROZEN, VIEW_PUBLIC, LeaderboardService
from .lifecycle import ContestAction, ContestPhase, derive_phase, is_frozen
from .models import Contest, ContestParticipant
from .schemas import ClarificationAnswerSchema, ClarificationAskSchema, ContestUpdateSchema, RegistrationSchema
from .services import (
    TRANSITION_HANDLERS,
    ClarificationAnswerService,
    ClarificationAskService,
    ClarificationListService,
    ContestContextService,
    ContestDeleteService,
    ContestDisqualifyService,
    ContestLeaveService,
    ContestRegistrationService,
    ContestStatsService,
    ContestTransitionService,
    ContestUpdateService,
)


# 测试用例：覆盖 contests 模块的阶段推导、状态流转、报名、排行榜、答疑与接口冒烟


def _record(participant: ContestParticipant, index: int, status: str, score: float, at) -> Submission:
    """直接写入一条已判题的提交记录"""
    contest = participant.contest
    return Submission.objects.create(
        contest=contest,
        participant=participant,
        user=participant.user,
        problem=contest.problems.get(index=index),
        problem_index=index,
        language="python",
        code="print(1)",
        status=status,
        score=score,
        submitted_at=at,
        judged_at=at,
    )


class ContestPhaseTests(SimpleTestCase):
    """阶段推导只依赖 (status, 时间窗口, now)"""

    def setUp(self) -> None:
        self.now = timezone.now()
        self.start = self.now + timedelta(hours=1)
        self.end = self.start + timedelta(hours=2)

    def _contest(self, status: str) -> Contest:
        return Contest(status=status, start_time=self.start, end_time=self.end)

    def test_published_follows_clock(self):
        contest = self._contest(Contest.Status.PUBLISHED)
        self.assertEqual(derive_phase(contest, self.now), ContestPhase.UPCOMING.value)
        self.assertEqual(derive_phase(contest, self.start), ContestPhase.RUNNING.value)
        self.assertEqual(derive_phase(contest, self.end), ContestPhase.ENDED.value)

    def test_draft_never_runs(self):
        contest = self._contest(Contest.Status.DRAFT)
        self.assertEqual(derive_phase(contest, self.start + timedelta(minutes=5)), ContestPhase.UPCOMING.value)
        self.assertEqual(derive_phase(contest, self.end), ContestPhase.ENDED.value)

    def test_terminal_statuses_are_ended(self):
        for status in (Contest.Status.COMPLETED, Contest.Status.CANCELLED):
            self.assertEqual(derive_phase(self._contest(status), self.now), ContestPhase.ENDED.value)

    def test_active_runs_until_end(self):
        contest = self._contest(Contest.Status.ACTIVE)
        self.assertEqual(derive_phase(contest, self.now), ContestPhase.RUNNING.value)
        self.assertEqual(derive_phase(contest, self.end + timedelta(seconds=1)), ContestPhase.ENDED.value)

    def test_same_inputs_same_phase(self):
        contest = self._contest(Contest.Status.REGISTRATION_CLOSED)
        moment = self.start + timedelta(minutes=1)
        self.assertEqual(derive_phase(contest, moment), derive_phase(contest, moment))

    def test_every_action_has_exactly_one_handler(self):
        self.assertEqual(set(TRANSITION_HANDLERS), set(ContestAction))

    def test_context_helper_is_not_a_service(self):
        # 上下文辅助类只被组合使用，不提供 execute 入口
        self.assertFalse(issubclass(ContestContextService, BaseService))
        self.assertFalse(hasattr(ContestContextService(), "execute"))

    def test_freeze_window(self):
        contest = Contest(
            status=Contest.Status.ACTIVE,
            start_time=self.now - timedelta(minutes=55),
            end_time=self.now + timedelta(minutes=5),
            freeze_leaderboard=True,
            freeze_minutes=10,
        )
        self.assertTrue(is_frozen(contest, self.now))
        self.assertFalse(is_frozen(contest, self.now - timedelta(minutes=10)))
        contest.freeze_leaderboard = False
        self.assertFalse(is_frozen(contest, self.now))


class ContestServiceTestBase(TestCase):
    def setUp(self) -> None:
        self.now = timezone.now()
        self.community = make_community("lab")
        self.mentor = make_user("mentor", role=User.Role.MENTOR, community=self.community)
        self.alice = make_user("alice", community=self.community)
        self.bob = make_user("bob", community=self.community)
        self.carol = make_user("carol", community=self.community)

    def running_contest(self, slug: str = "running", **fields) -> Contest:
        fields.setdefault("start", self.now - timedelta(minutes=30))
        return make_contest(self.community, self.mentor, slug=slug, status=Contest.Status.ACTIVE, **fields)


class ContestLifecycleTests(ContestServiceTestBase):
    """状态流转：合法路径、非法来源状态、幂等结赛"""

    def test_publish_open_close_flow(self):
        contest = make_contest(self.community, self.mentor)
        service = ContestTransitionService()
        self.assertEqual(service.execute(contest.slug, ContestAction.PUBLISH, self.mentor).status,
                         Contest.Status.PUBLISHED)
        self.assertEqual(service.execute(contest.slug, "open_registration", self.mentor).status,
                         Contest.Status.REGISTRATION_OPEN)
        self.assertEqual(service.execute(contest.slug, "close_registration", self.mentor).status,
                         Contest.Status.REGISTRATION_CLOSED)

    def test_publish_requires_problems(self):
        contest = make_contest(self.community, self.mentor, problems=0)
        with self.assertRaises(ValidationError):
            ContestTransitionService().execute(contest.slug, ContestAction.PUBLISH, self.mentor)
        contest.refresh_from_db()
        self.assertEqual(contest.status, Contest.Status.DRAFT)

    def test_publish_notifies_community(self):
        contest = make_contest(self.community, self.mentor)
        ContestTransitionService().execute(contest.slug, ContestAction.PUBLISH, self.mentor)
        self.assertEqual(
            Notification.objects.filter(contest=contest, type=Notification.Type.CONTEST_NEW).count(), 3
        )

    def test_start_before_start_time_rejected(self):
        contest = make_contest(self.community, self.mentor, status=Contest.Status.REGISTRATION_CLOSED)
        with self.assertRaises(InvalidTransitionError):
            ContestTransitionService().execute(contest.slug, ContestAction.START, self.mentor)

    def test_complete_from_wrong_status(self):
        contest = make_contest(self.community, self.mentor, status=Contest.Status.PUBLISHED)
        with self.assertRaises(InvalidTransitionError) as ctx:
            ContestTransitionService().execute(contest.slug, ContestAction.COMPLETE, self.mentor)
        self.assertEqual(ctx.exception.code, 46010)

    def test_complete_is_idempotent(self):
        contest = self.running_contest()
        service = ContestTransitionService()
        service.execute(contest.slug, ContestAction.COMPLETE, self.mentor)
        again = service.execute(contest.slug, ContestAction.COMPLETE, self.mentor)
        self.assertEqual(again.status, Contest.Status.COMPLETED)
        self.assertEqual(derive_phase(again, timezone.now()), ContestPhase.ENDED.value)

    def test_cancel_running_contest(self):
        contest = self.running_contest()
        cancelled = ContestTransitionService().execute(contest.slug, ContestAction.CANCEL, self.mentor)
        self.assertEqual(cancelled.status, Contest.Status.CANCELLED)
        with self.assertRaises(InvalidTransitionError):
            ContestTransitionService().execute(contest.slug, ContestAction.CANCEL, self.mentor)

    def test_unknown_action(self):
        contest = make_contest(self.community, self.mentor)
        with self.assertRaises(ValidationError):
            ContestTransitionService().execute(contest.slug, "explode", self.mentor)

    def test_only_manager_can_transition(self):
        contest = make_contest(self.community, self.mentor)
        with self.assertRaises(PermissionDeniedError):
            ContestTransitionService().execute(contest.slug, ContestAction.PUBLISH, self.alice)

    def test_published_contest_syncs_to_active(self):
        contest = make_contest(self.community, self.mentor, slug="synced", status=Contest.Status.PUBLISHED,
                               start=self.now - timedelta(minutes=5))
        ContestStatsService().execute(contest.slug)
        contest.refresh_from_db()
        self.assertEqual(contest.status, Contest.Status.ACTIVE)

    def test_delete_running_then_completed(self):
        contest = self.running_contest()
        with self.assertRaises(CannotDeleteRunningContestError):
            ContestDeleteService().execute(contest.slug, self.mentor)
        self.assertTrue(Contest.objects.filter(pk=contest.pk).exists())
        ContestTransitionService().execute(contest.slug, ContestAction.COMPLETE, self.mentor)
        ContestDeleteService().execute(contest.slug, self.mentor)
        self.assertFalse(Contest.objects.filter(pk=contest.pk).exists())

    def test_update_rules(self):
        contest = self.running_contest()
        make_participant(contest, self.alice)
        make_participant(contest, self.bob)
        with self.assertRaises(ImmutableDuringContestError):
            ContestUpdateService().execute(
                ContestUpdateSchema.from_payload(contest.slug, {"problems": [{"title": "新题"}]}), self.mentor
            )
        with self.assertRaises(ValidationError):
            ContestUpdateService().execute(
                ContestUpdateSchema.from_payload(contest.slug, {"max_participants": 1}), self.mentor
            )
        updated = ContestUpdateService().execute(
            ContestUpdateSchema.from_payload(contest.slug, {"title": "改名后的比赛"}), self.mentor
        )
        self.assertEqual(updated.title, "改名后的比赛")

    def test_completed_contest_is_read_only(self):
        contest = self.running_contest()
        ContestTransitionService().execute(contest.slug, ContestAction.COMPLETE, self.mentor)
        with self.assertRaises(InvalidTransitionError):
            ContestUpdateService().execute(
                ContestUpdateSchema.from_payload(contest.slug, {"title": "x"}), self.mentor
            )

    def test_update_rejects_unknown_fields(self):
        with self.assertRaises(ValidationError):
            ContestUpdateSchema.from_payload("any", {"status": Contest.Status.ACTIVE})

    def test_flag_strings_are_parsed(self):
        schema = ContestUpdateSchema.from_payload("any", {"freeze_leaderboard": "false", "allow_clarifications": "1"})
        self.assertIs(schema.changes["freeze_leaderboard"], False)
        self.assertIs(schema.changes["allow_clarifications"], True)
        with self.assertRaises(ValidationError):
            ContestUpdateSchema.from_payload("any", {"allow_clarifications": "maybe"})

        answer = ClarificationAnswerSchema(contest_slug="any", clarification_id=1, answer="是", is_public="false")
        self.assertIs(answer.is_public, False)
        with self.assertRaises(ValidationError):
            ClarificationAnswerSchema(contest_slug="any", clarification_id=1, answer="是", is_public=None)


class ContestRegistrationTests(ContestServiceTestBase):
    """报名：窗口、重复报名、名额、退赛"""

    def setUp(self) -> None:
        super().setUp()
        self.contest = make_contest(
            self.community, self.mentor, status=Contest.Status.REGISTRATION_OPEN, max_participants=1
        )

    def _register(self, user: User) -> ContestParticipant:
        return ContestRegistrationService().execute(RegistrationSchema(contest_slug=self.contest.slug), user)

    def test_capacity_one(self):
        participant = self._register(self.alice)
        self.assertEqual(participant.user_id, self.alice.id)
        with self.assertRaises(CapacityExceededError):
            self._register(self.bob)
        self.contest.refresh_from_db()
        self.assertEqual(self.contest.participant_count, 1)
        self.assertTrue(
            Notification.objects.filter(user=self.alice, type=Notification.Type.CONTEST_REG_SUCCESS).exists()
        )

    def test_double_registration(self):
        self._register(self.alice)
        with self.assertRaises(AlreadyRegisteredError) as ctx:
            self._register(self.alice)
        self.assertEqual(ctx.exception.code, 46102)
        self.assertEqual(ContestParticipant.objects.filter(contest=self.contest, user=self.alice).count(), 1)

    def test_registration_closed(self):
        closed = make_contest(
            self.community,
            self.mentor,
            slug="closed",
            status=Contest.Status.REGISTRATION_OPEN,
            registration_start=self.now - timedelta(days=2),
            registration_end=self.now - timedelta(minutes=1),
        )
        with self.assertRaises(RegistrationClosedError):
            ContestRegistrationService().execute(RegistrationSchema(contest_slug=closed.slug), self.alice)
        self.assertFalse(ContestParticipant.objects.filter(contest=closed).exists())

    def test_manager_and_outsider_cannot_register(self):
        with self.assertRaises(PermissionDeniedError):
            self._register(self.mentor)
        outsider = make_user("outsider", community=make_community("other"))
        with self.assertRaises(PermissionDeniedError):
            self._register(outsider)

    def test_team_contest_requires_team_data(self):
        team = make_contest(self.community, self.mentor, slug="team", status=Contest.Status.REGISTRATION_OPEN,
                            contest_type=Contest.ContestType.TEAM)
        with self.assertRaises(ValidationError):
            ContestRegistrationService().execute(RegistrationSchema(contest_slug=team.slug), self.alice)
        participant = ContestRegistrationService().execute(
            RegistrationSchema(contest_slug=team.slug, team_data={"name": " 猫队 ", "members": ["alice", ""]}),
            self.alice,
        )
        self.assertEqual(participant.team_data, {"name": "猫队", "members": ["alice"]})

    def test_leave_before_start_only(self):
        self._register(self.alice)
        ContestLeaveService().execute(self.contest.slug, self.alice)
        self.contest.refresh_from_db()
        self.assertEqual(self.contest.participant_count, 0)
        # 退赛后名额释放
        self._register(self.bob)

        running = self.running_contest()
        make_participant(running, self.alice)
        with self.assertRaises(InvalidTransitionError):
            ContestLeaveService().execute(running.slug, self.alice)
        with self.assertRaises(NotAParticipantError):
            ContestLeaveService().execute(running.slug, self.carol)


class LeaderboardTests(ContestServiceTestBase):
    """排行榜：名次、并列、封榜投影、取消资格"""

    def test_ties_share_rank(self):
        contest = self.running_contest()
        solved_at = self.now - timedelta(minutes=10)
        pa = make_participant(contest, self.alice, registered_at=self.now - timedelta(days=1, minutes=3))
        pb = make_participant(contest, self.bob, registered_at=self.now - timedelta(days=1, minutes=2))
        pc = make_participant(contest, self.carol, registered_at=self.now - timedelta(days=1, minutes=1))
        _record(pa, 0, Submission.Status.ACCEPTED, 10, solved_at)
        _record(pb, 0, Submission.Status.ACCEPTED, 10, solved_at)
        _record(pc, 0, Submission.Status.WRONG_ANSWER, 0, solved_at)

        entries = LeaderboardService().build(contest)["entries"]
        self.assertEqual([e["rank"] for e in entries], [1, 1, 3])
        # 并列时按报名时间稳定排序
        self.assertEqual([e["username"] for e in entries], ["alice", "bob", "carol"])

    def test_earlier_last_solve_ranks_higher(self):
        contest = self.running_contest()
        pa = make_participant(contest, self.alice)
        pb = make_participant(contest, self.bob)
        _record(pa, 0, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=5))
        _record(pb, 0, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=20))
        entries = LeaderboardService().build(contest)["entries"]
        self.assertEqual([(e["username"], e["rank"]) for e in entries], [("bob", 1), ("alice", 2)])

    def test_freeze_hides_late_submissions(self):
        contest = self.running_contest(
            start=self.now - timedelta(minutes=55),
            duration=timedelta(hours=1),
            freeze_leaderboard=True,
            freeze_minutes=10,
        )
        pa = make_participant(contest, self.alice)
        pb = make_participant(contest, self.bob)
        _record(pa, 0, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=20))
        _record(pb, 0, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=2))
        _record(pb, 1, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=1))

        public = LeaderboardService().build(contest, self.alice, now=self.now)
        self.assertTrue(public["frozen"])
        scores = {e["username"]: e["total_score"] for e in public["entries"]}
        self.assertEqual(scores, {"alice": 10, "bob": 0})

        # 参赛者请求未封榜视图无效
        self.assertTrue(LeaderboardService().build(contest, self.alice, unfrozen=True, now=self.now)["frozen"])

        owner = LeaderboardService().build(contest, self.mentor, unfrozen=True, now=self.now)
        self.assertFalse(owner["frozen"])
        self.assertEqual([(e["username"], e["total_score"]) for e in owner["entries"]], [("bob", 20), ("alice", 10)])
        # 存储的提交记录不受封榜影响
        self.assertEqual(Submission.objects.filter(participant=pb).count(), 2)

    def test_disqualified_participant_is_hidden(self):
        contest = self.running_contest()
        pa = make_participant(contest, self.alice)
        make_participant(contest, self.bob)
        _record(pa, 0, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=3))
        ContestDisqualifyService().execute(contest.slug, self.mentor, self.alice.id)
        entries = LeaderboardService().build(contest)["entries"]
        self.assertEqual([e["username"] for e in entries], ["bob"])
        self.assertTrue(
            Notification.objects.filter(user=self.alice, type=Notification.Type.CONTEST_DISQUALIFIED).exists()
        )

    def test_invalidate_waits_for_commit(self):
        contest = self.running_contest()
        make_participant(contest, self.alice)
        with mock.patch("apps.contests.leaderboard.redis_client.delete") as delete:
            with self.captureOnCommitCallbacks(execute=False) as callbacks:
                ContestDisqualifyService().execute(contest.slug, self.mentor, self.alice.id)
            # 事务提交前不删除缓存
            delete.assert_not_called()
            for callback in callbacks:
                callback()
        delete.assert_called_once_with(
            leaderboard_key(contest.id, VIEW_PUBLIC), leaderboard_key(contest.id, VIEW_FROZEN)
        )

    def test_unfrozen_view_shares_live_cache_key(self):
        contest = self.running_contest(
            start=self.now - timedelta(minutes=55),
            duration=timedelta(hours=1),
            freeze_leaderboard=True,
            freeze_minutes=10,
        )
        make_participant(contest, self.alice)
        with mock.patch("apps.contests.leaderboard.redis_client.get_json", return_value=None) as get_json, \
                mock.patch("apps.contests.leaderboard.redis_client.set_json"):
            LeaderboardService().build(contest, self.mentor, unfrozen=True, now=self.now)
            LeaderboardService().build(contest, self.alice, now=self.now)
        keys = [call.args[0] for call in get_json.call_args_list]
        self.assertEqual(keys, [leaderboard_key(contest.id, VIEW_PUBLIC), leaderboard_key(contest.id, VIEW_FROZEN)])


class ClarificationAndStatsTests(ContestServiceTestBase):
    def setUp(self) -> None:
        super().setUp()
        self.contest = self.running_contest()
        self.pa = make_participant(self.contest, self.alice)
        self.pb = make_participant(self.contest, self.bob)

    def test_private_question_until_answered_publicly(self):
        question = ClarificationAskService().execute(
            ClarificationAskSchema(contest_slug=self.contest.slug, question="输入是否有多组？", problem_index=0),
            self.alice,
        )
        self.assertEqual(ClarificationListService().execute(self.contest.slug, self.bob), [])
        self.assertEqual(len(ClarificationListService().execute(self.contest.slug, self.mentor)), 1)

        ClarificationAnswerService().execute(
            ClarificationAnswerSchema(
                contest_slug=self.contest.slug, clarification_id=question.id, answer="只有一组", is_public=True
            ),
            self.mentor,
        )
        visible = ClarificationListService().execute(self.contest.slug, self.bob)
        self.assertEqual([c.answer for c in visible], ["只有一组"])
        self.assertTrue(
            Notification.objects.filter(user=self.alice, type=Notification.Type.CLARIFICATION_ANSWERED).exists()
        )

    def test_question_rules(self):
        with self.assertRaises(NotAParticipantError):
            ClarificationAskService().execute(
                ClarificationAskSchema(contest_slug=self.contest.slug, question="?"), self.carol
            )
        with self.assertRaises(PermissionDeniedError):
            ClarificationAnswerService().execute(
                ClarificationAnswerSchema(contest_slug=self.contest.slug, clarification_id=1, answer="x"),
                self.bob,
            )
        self.contest.allow_clarifications = False
        self.contest.save(update_fields=["allow_clarifications"])
        with self.assertRaises(ClarificationsDisabledError):
            ClarificationAskService().execute(
                ClarificationAskSchema(contest_slug=self.contest.slug, question="?"), self.alice
            )

    def test_stats(self):
        _record(self.pa, 0, Submission.Status.ACCEPTED, 10, self.now - timedelta(minutes=5))
        _record(self.pb, 0, Submission.Status.WRONG_ANSWER, 0, self.now - timedelta(minutes=4))
        _record(self.pb, 1, Submission.Status.PENDING, 0, self.now - timedelta(minutes=1))
        ContestParticipant.objects.filter(pk=self.pa.pk).update(score=10)

        stats = ContestStatsService().execute(self.contest.slug)
        self.assertEqual(stats["phase"], ContestPhase.RUNNING.value)
        self.assertEqual(stats["total_participants"], 2)
        self.assertEqual(stats["total_submissions"], 2)
        self.assertEqual(stats["accepted_submissions"], 1)
        self.assertEqual(stats["average_score"], 5)
        self.assertEqual(stats["completion_rate"], 0.5)
        first = stats["problems"][0]
        self.assertEqual((first["submissions"], first["accepted"], first["acceptance_rate"]), (2, 1, 0.5))
        self.assertEqual(stats["problems"][1]["submissions"], 0)


class ContestsAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """Contests 模块接口冒烟：统一响应结构与权限"""

    @classmethod
    def setUpTestData(cls):
        cls.community = make_community("lab")
        cls.mentor = make_user("mentor", role=User.Role.MENTOR, community=cls.community)
        cls.alice = make_user("alice", community=cls.community)

    def setUp(self):
        # 清理缓存，避免节流干扰
        cache.clear()
        self.now = timezone.now()

    def _create_payload(self, slug: str) -> dict:
        start = self.now + timedelta(days=1)
        return {
            "title": "Autumn Cup",
            "slug": slug,
            "community": self.community.slug,
            "registration_start": (self.now - timedelta(hours=1)).isoformat(),
            "registration_end": start.isoformat(),
            "start_time": start.isoformat(),
            "end_time": (start + timedelta(hours=3)).isoformat(),
            "scoring_mode": "partial",
            "allowed_languages": ["Python", "cpp", "python"],
            "problems": [{"title": "A + B", "points": 50}, {"title": "Graph", "points": 100}],
        }

    def test_create_and_publish(self):
        client = self.auth_client(self.mentor)
        resp = client.post("/api/contests/", self._create_payload("autumn"), format="json")
        self.assertEqual(resp.status_code, 201, resp.content)
        contest = resp.data["data"]["contest"]
        self.assertEqual(contest["status"], Contest.Status.DRAFT)
        self.assertEqual(contest["problem_count"], 2)
        self.assertEqual(contest["rules"]["allowed_languages"], ["python", "cpp"])

        resp = client.post("/api/contests/autumn/actions/open_registration/", format="json")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["contest"]["status"], Contest.Status.REGISTRATION_OPEN)
        self.assertEqual(resp.data["data"]["contest"]["phase"], ContestPhase.UPCOMING.value)

    def test_student_cannot_create(self):
        resp = self.auth_client(self.alice).post("/api/contests/", self._create_payload("nope"), format="json")
        self.assertBizError(resp, 403, 40300)

    def test_invalid_schedule(self):
        payload = self._create_payload("bad")
        payload["end_time"] = payload["start_time"]
        resp = self.auth_client(self.mentor).post("/api/contests/", payload, format="json")
        self.assertBizError(resp, 400, 40002)

    def test_unknown_action(self):
        make_contest(self.community, self.mentor, slug="act")
        resp = self.auth_client(self.mentor).post("/api/contests/act/actions/explode/", format="json")
        self.assertBizError(resp, 400, 40002)

    def test_list_hides_drafts_and_filters_phase(self):
        make_contest(self.community, self.mentor, slug="draft-one")
        make_contest(self.community, self.mentor, slug="open-one", status=Contest.Status.REGISTRATION_OPEN)
        resp = self.client.get("/api/contests/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual([c["slug"] for c in resp.data["data"]], ["open-one"])
        self.assertEqual(resp.data["extra"]["total"], 1)

        resp = self.auth_client(self.mentor).get("/api/contests/", {"phase": "upcoming"})
        self.assertEqual({c["slug"] for c in resp.data["data"]}, {"draft-one", "open-one"})

        resp = self.client.get("/api/contests/", {"phase": "someday"})
        self.assertBizError(resp, 400, 40002)

    def test_list_shows_drafts_to_contest_managers(self):
        owner = make_user("owner")
        other = make_community("other", owner=owner)
        make_contest(self.community, self.mentor, slug="lab-draft")
        make_contest(other, self.mentor, slug="other-draft")
        lab_admin = make_user("lab-admin", role=User.Role.COMMUNITY_ADMIN, community=self.community)

        def drafts(user):
            resp = self.auth_client(user).get("/api/contests/")
            self.assertEqual(resp.status_code, 200)
            return {c["slug"] for c in resp.data["data"]}

        # 列表与详情接口使用同一管理者判定
        self.assertEqual(drafts(lab_admin), {"lab-draft"})
        self.assertEqual(drafts(owner), {"other-draft"})
        self.assertEqual(drafts(self.mentor), {"lab-draft", "other-draft"})
        self.assertEqual(drafts(self.alice), set())
        self.assertEqual(self.auth_client(lab_admin).get("/api/contests/lab-draft/").status_code, 200)
        self.assertEqual(self.auth_client(owner).get("/api/contests/other-draft/").status_code, 200)

    def test_detail_visibility(self):
        make_contest(self.community, self.mentor, slug="secret")
        self.assertBizError(self.auth_client(self.alice).get("/api/contests/secret/"), 404, 40400)

        make_contest(self.community, self.mentor, slug="soon", status=Contest.Status.PUBLISHED)
        resp = self.auth_client(self.alice).get("/api/contests/soon/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["data"]["problems"], [])
        self.assertFalse(resp.data["data"]["can_manage"])

        resp = self.auth_client(self.mentor).get("/api/contests/soon/")
        self.assertEqual(len(resp.data["data"]["problems"]), 2)
        self.assertIn("test_cases", resp.data["data"]["problems"][0])

    def test_register_twice_and_leaderboard(self):
        make_contest(self.community, self.mentor, slug="reg", status=Contest.Status.REGISTRATION_OPEN)
        client = self.auth_client(self.alice)
        resp = client.post("/api/contests/reg/registration/", {}, format="json")
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["data"]["participant"]["user_id"], self.alice.id)
        self.assertBizError(client.post("/api/contests/reg/registration/", {}, format="json"), 409, 46102)

        resp = self.client.get("/api/contests/reg/leaderboard/")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.data["data"]["frozen"])
        self.assertEqual(resp.data["data"]["entries"][0]["rank"], 1)

        resp = self.client.get("/api/contests/reg/participants/")
        self.assertEqual(resp.data["extra"]["total"], 1)

    def test_delete_running_contest_api(self):
        make_contest(self.community, self.mentor, slug="live", status=Contest.Status.ACTIVE,
                     start=self.now - timedelta(minutes=10))
        resp = self.auth_client(self.mentor).delete("/api/contests/live/")
        self.assertBizError(resp, 409, 46012)

    def test_upcoming(self):
        make_contest(self.community, self.mentor, slug="next", status=Contest.Status.PUBLISHED)
        make_contest(self.community, self.mentor, slug="hidden")
        resp = self.client.get("/api/contests/upcoming/")
        self.assertEqual([c["slug"] for c in resp.data["data"]], ["next"])
