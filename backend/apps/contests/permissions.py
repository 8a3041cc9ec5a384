"""
比赛级权限判断

比赛管理者（privileged）：创建人、平台管理员、所属社区的所有者或社区管理员。
管理者可执行生命周期操作、查看未封榜排行榜、回复答疑、取消参赛资格。
"""

from __future__ import annotations

from django.db.models import Q

from apps.common.permissions import ROLE_COMMUNITY_ADMIN, can_manage_community, is_platform_admin

from .models import Contest


def is_privileged(user, contest: Contest) -> bool:
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    if contest.created_by_id == user.id:
        return True
    return can_manage_community(user, contest.community)


def privileged_q(user) -> Q:
    """与 is_privileged 相同规则的查询条件，用于列表中筛出可管理的比赛"""
    if user is None or not getattr(user, "is_authenticated", False):
        return Q(pk__in=[])
    if is_platform_admin(user):
        return Q(pk__isnull=False)
    condition = Q(created_by=user) | Q(community__owner=user)
    if getattr(user, "role", None) == ROLE_COMMUNITY_ADMIN and user.community_id:
        condition |= Q(community_id=user.community_id)
    return condition
