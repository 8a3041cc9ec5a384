from __future__ import annotations

from django.utils import timezone

from apps.common.base.base_service import BaseService
from apps.contests.lifecycle import running_q
from apps.contests.models import Contest

from .directory import UserDirectory
from .models import Community, User
from .repo import CommunityRepo

# 服务层：社区统计与当前用户信息，只读操作不开启事务


def serialize_user(user: User) -> dict:
    """用户序列化：仅返回目录字段，不包含敏感信息"""
    return {
        "id": user.id,
        "username": user.username,
        "nickname": user.display_name,
        "role": user.role,
        "community_id": user.community_id,
    }


class CurrentUserService(BaseService[dict]):
    """当前用户信息：通过用户目录读取，保证与授权判断使用同一数据来源"""

    atomic_enabled = False

    def __init__(self, directory: UserDirectory | None = None):
        self.directory = directory or UserDirectory()

    def perform(self, user: User) -> dict:
        info = self.directory.get_user(user.id)
        data = info.to_dict()
        data["nickname"] = user.display_name
        return data


class CommunityStatsService(BaseService[dict]):
    """
    社区统计：
    - total_contests / total_participations：报名与建赛时维护的缓存计数
    - active_contests：按实时阶段统计进行中的比赛
    """

    atomic_enabled = False

    def __init__(self, repo: CommunityRepo | None = None):
        self.repo = repo or CommunityRepo()

    def perform(self, slug: str) -> dict:
        community: Community = self.repo.get_by_slug(slug)
        active = Contest.objects.filter(community=community).filter(running_q(timezone.now())).count()
        return {
            "community": community.slug,
            "name": community.name,
            "total_contests": community.total_contests,
            "active_contests": active,
            "total_participations": community.total_participations,
            "member_count": community.members.count(),
        }
