from __future__ import annotations

from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.accounts.directory import UserDirectory
from apps.accounts.models import User
from apps.common.exceptions import NotFoundError
from apps.common.tests_utils import AuthenticatedAPIMixin, make_community, make_contest, make_user
from apps.contests.models import Contest


class UserDirectoryTests(TestCase):
    """用户目录：只暴露角色与社区，停用账号视为不存在"""

    def setUp(self) -> None:
        self.community = make_community("lab")
        self.user = make_user("alice", community=self.community)

    def test_get_user(self):
        info = UserDirectory().get_user(self.user.id)
        self.assertEqual(info.role, User.Role.STUDENT)
        self.assertEqual(info.community_id, self.community.id)
        self.assertEqual(info.username, "alice")

    def test_inactive_or_unknown_user(self):
        self.user.is_active = False
        self.user.save(update_fields=["is_active"])
        with self.assertRaises(NotFoundError):
            UserDirectory().get_user(self.user.id)
        with self.assertRaises(NotFoundError):
            UserDirectory().get_user(999999)

    def test_nickname_defaults_to_username(self):
        self.assertEqual(self.user.display_name, "alice")


class AccountsAPITestCase(AuthenticatedAPIMixin, APITestCase):
    """账户模块接口冒烟：当前用户与社区统计"""

    @classmethod
    def setUpTestData(cls):
        cls.community = make_community("lab")
        cls.mentor = make_user("mentor", role=User.Role.MENTOR, community=cls.community)
        cls.student = make_user("student", community=cls.community)

    def test_me_requires_login(self):
        resp = self.client.get("/api/accounts/me/")
        self.assertBizError(resp, 401, 40100)

    def test_me(self):
        resp = self.auth_client(self.student).get("/api/accounts/me/")
        self.assertEqual(resp.status_code, 200)
        user = resp.data["data"]["user"]
        self.assertEqual(user["id"], self.student.id)
        self.assertEqual(user["role"], User.Role.STUDENT)
        self.assertEqual(user["community_id"], self.community.id)

    def test_community_stats_counts_running_contests(self):
        now = timezone.now()
        make_contest(self.community, self.mentor, slug="running", status=Contest.Status.ACTIVE,
                     start=now - timedelta(minutes=30))
        make_contest(self.community, self.mentor, slug="later", status=Contest.Status.PUBLISHED)
        resp = self.client.get(f"/api/accounts/communities/{self.community.slug}/stats/")
        self.assertEqual(resp.status_code, 200)
        data = resp.data["data"]
        self.assertEqual(data["active_contests"], 1)
        self.assertEqual(data["member_count"], 2)

    def test_unknown_community(self):
        resp = self.client.get("/api/accounts/communities/missing/stats/")
        self.assertBizError(resp, 404, 40400)
