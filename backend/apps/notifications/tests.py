from __future__ import annotations

from datetime import timedelta

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.models import User
from apps.common.exceptions import NotFoundError
from apps.common.tests_utils import (
    AuthenticatedAPIMixin,
    make_community,
    make_contest,
    make_participant,
    make_user,
)
from apps.contests.models import Contest

from .models import Notification
from .services import (
    NotificationMarkReadService,
    build_dedup_key,
    create_and_push_notification,
)
from .tasks import scan_contests_for_notifications


class DedupKeyTests(SimpleTestCase):
    def test_format(self):
        contest = Contest(id=7)
        self.assertEqual(
            build_dedup_key(type=Notification.Type.CONTEST_STARTED, contest=contest, bucket="started"),
            "type:contest_started|contest:7|bucket:started",
        )
        self.assertEqual(build_dedup_key(type="x", extra="42"), "type:x|contest:|extra:42")


class NotificationServiceTests(TestCase):
    """通知写入：去重键刷新内容并重置已读"""

    def setUp(self) -> None:
        self.community = make_community("lab")
        self.alice = make_user("alice", community=self.community)
        self.bob = make_user("bob", community=self.community)

    def test_dedup_refreshes_and_resets_read(self):
        first = create_and_push_notification(self.alice.id, type=Notification.Type.CONTEST_UPCOMING,
                                             title="旧标题", dedup_key="k1")
        first.mark_read()
        second = create_and_push_notification(self.alice.id, type=Notification.Type.CONTEST_UPCOMING,
                                              title="新标题", dedup_key="k1")
        self.assertEqual(first.id, second.id)
        second.refresh_from_db()
        self.assertEqual(second.title, "新标题")
        self.assertFalse(second.is_read)
        self.assertEqual(Notification.objects.filter(user=self.alice).count(), 1)

    def test_payload_datetimes_are_serialized(self):
        moment = timezone.now()
        notif = create_and_push_notification(self.alice.id, type=Notification.Type.CONTEST_NEW, title="t",
                                             payload={"start_time": moment})
        notif.refresh_from_db()
        self.assertEqual(notif.payload["start_time"], moment.isoformat())

    def test_cannot_read_others_notification(self):
        notif = create_and_push_notification(self.alice.id, type=Notification.Type.CONTEST_NEW, title="t")
        with self.assertRaises(NotFoundError):
            NotificationMarkReadService().execute(self.bob, notif.id)
        self.assertTrue(NotificationMarkReadService().execute(self.alice, notif.id).is_read)


class ContestReminderScanTests(TestCase):
    """周期扫描：按时间窗口生成提醒，重复扫描不产生重复通知"""

    def setUp(self) -> None:
        self.now = timezone.now()
        self.community = make_community("lab")
        self.mentor = make_user("mentor", role=User.Role.MENTOR, community=self.community)
        self.alice = make_user("alice", community=self.community)
        self.bob = make_user("bob", community=self.community)

    def _count(self, type_: str) -> int:
        return Notification.objects.filter(type=type_).count()

    def test_start_soon_is_deduplicated(self):
        contest = make_contest(self.community, self.mentor, status=Contest.Status.REGISTRATION_CLOSED,
                               start=self.now + timedelta(minutes=30))
        make_participant(contest, self.alice)
        make_participant(contest, self.bob)

        self.assertEqual(scan_contests_for_notifications(), 2)
        scan_contests_for_notifications()
        self.assertEqual(self._count(Notification.Type.CONTEST_UPCOMING), 2)

    def test_registration_open_goes_to_community(self):
        make_contest(self.community, self.mentor, status=Contest.Status.REGISTRATION_OPEN,
                     start=self.now + timedelta(days=2), registration_start=self.now - timedelta(minutes=2))
        make_user("outsider", community=make_community("other"))
        scan_contests_for_notifications()
        self.assertEqual(
            set(Notification.objects.filter(type=Notification.Type.CONTEST_REG_OPEN).values_list("user__username",
                                                                                                   flat=True)),
            {"mentor", "alice", "bob"},
        )

    def test_started_and_ended(self):
        running = make_contest(self.community, self.mentor, slug="running", status=Contest.Status.ACTIVE,
                               start=self.now - timedelta(minutes=5))
        finished = make_contest(self.community, self.mentor, slug="finished", status=Contest.Status.COMPLETED,
                                start=self.now - timedelta(hours=2, minutes=5))
        make_participant(running, self.alice)
        disqualified = make_participant(running, self.bob)
        disqualified.is_disqualified = True
        disqualified.save(update_fields=["is_disqualified"])
        make_participant(finished, self.bob)

        scan_contests_for_notifications()
        started = Notification.objects.get(type=Notification.Type.CONTEST_STARTED)
        self.assertEqual((started.user_id, started.contest_id), (self.alice.id, running.id))
        ended = Notification.objects.get(type=Notification.Type.CONTEST_ENDED)
        self.assertEqual((ended.user_id, ended.contest_id), (self.bob.id, finished.id))


class NotificationAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """通知接口：列表、未读数与已读标记"""

    @classmethod
    def setUpTestData(cls):
        cls.alice = make_user("alice")
        cls.bob = make_user("bob")
        cls.first = create_and_push_notification(cls.alice.id, type=Notification.Type.CONTEST_NEW, title="一")
        cls.second = create_and_push_notification(cls.alice.id, type=Notification.Type.CONTEST_NEW, title="二")
        create_and_push_notification(cls.bob.id, type=Notification.Type.CONTEST_NEW, title="三")

    def test_requires_login(self):
        self.assertBizError(self.client.get("/api/notifications/"), 401, 40100)

    def test_list_and_mark_read(self):
        client = self.auth_client(self.alice)
        resp = client.get("/api/notifications/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["extra"]["total"], 2)

        resp = client.post(f"/api/notifications/{self.first.id}/read/")
        self.assertTrue(resp.data["data"]["notification"]["is_read"])
        self.assertEqual(client.get("/api/notifications/unread-count/").data["data"]["unread"], 1)
        resp = client.get("/api/notifications/", {"status": "unread"})
        self.assertEqual([n["id"] for n in resp.data["data"]], [self.second.id])

    def test_mark_all_read(self):
        client = self.auth_client(self.alice)
        self.assertEqual(client.post("/api/notifications/mark-all-read/").data["data"]["updated"], 2)
        self.assertEqual(client.get("/api/notifications/unread-count/").data["data"]["unread"], 0)
        # 他人的通知不受影响
        self.assertEqual(self.auth_client(self.bob).get("/api/notifications/unread-count/").data["data"]["unread"], 1)

    def test_others_notification_is_not_found(self):
        resp = self.auth_client(self.bob).post(f"/api/notifications/{self.first.id}/read/")
        self.assertBizError(resp, 404, 40400)
