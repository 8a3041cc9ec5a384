from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone
from rest_framework.test import APIClient

from apps.accounts.models import Community, User
from apps.contests.models import Contest, ContestParticipant, Problem


def make_community(slug: str = "lab", *, owner: User | None = None) -> Community:
    return Community.objects.create(name=f"{slug} 社区", slug=slug, owner=owner)


def make_user(username: str, *, role: str = User.Role.STUDENT, community: Community | None = None) -> User:
    return User.objects.create_user(
        username=username,
        email=f"{username}@example.com",
        password="Passw0rd123",
        role=role,
        community=community,
    )


def make_contest(
        community: Community,
        creator: User,
        *,
        slug: str = "spring-cup",
        status: str = Contest.Status.DRAFT,
        start: Optional[datetime] = None,
        duration: timedelta = timedelta(hours=2),
        problems: int = 2,
        **fields,
) -> Contest:
    """
    构造一场比赛：默认 1 小时后开赛，报名窗口为开赛前 1 天至开赛时刻
    - problems 指定题目数量，题号从 0 开始，每题 10 分
    """
    start = start or timezone.now() + timedelta(hours=1)
    fields.setdefault("registration_start", start - timedelta(days=1))
    fields.setdefault("registration_end", start)
    contest = Contest.objects.create(
        slug=slug,
        title=f"{slug} 比赛",
        community=community,
        created_by=creator,
        status=status,
        start_time=start,
        end_time=start + duration,
        **fields,
    )
    for idx in range(problems):
        Problem.objects.create(
            contest=contest,
            index=idx,
            title=f"题目 {idx}",
            points=10,
            test_cases=[{"input": "1", "output": "1", "is_hidden": True}],
        )
    return contest


def make_participant(contest: Contest, user: User, *, registered_at: datetime | None = None) -> ContestParticipant:
    """跳过报名窗口校验直接落参赛记录，用于开赛后的场景"""
    participant = ContestParticipant.objects.create(
        contest=contest,
        user=user,
        registered_at=registered_at or contest.registration_start,
    )
    contest.participant_count += 1
    contest.save(update_fields=["participant_count"])
    return participant


class AuthenticatedAPIMixin:
    """
    提供认证客户端构造工具，减少各测试用例的重复代码
    - 令牌由外部身份服务签发，测试中直接 force_authenticate
    """

    client: APIClient  # 由 APITestCase 提供

    def auth_client(self, user: User) -> APIClient:
        """构造已认证的 APIClient"""
        client = APIClient()
        client.raise_request_exception = False
        client.force_authenticate(user=user)
        return client

    def assertBizError(self, resp, status_code: int, code: int) -> None:  # noqa: N802
        """断言统一错误响应结构"""
        self.assertEqual(resp.status_code, status_code, resp.content)  # type: ignore[attr-defined]
        self.assertFalse(resp.data["success"])  # type: ignore[attr-defined]
        self.assertEqual(resp.data["code"], code)  # type: ignore[attr-defined]
