"""账户模块的数据访问层

封装 User 与 Community 的查询与计数更新，避免视图/服务直接操作 ORM
"""

from __future__ import annotations

from django.db.models import F, QuerySet

from apps.common.base.base_repo import BaseRepo

from .models import Community, User


class UserRepo(BaseRepo[User]):
    """
    用户仓储：
    - 业务场景：用户目录查询、比赛通知收件人筛选
    - 只读为主，账号的创建与登录由外部身份服务负责
    """

    model = User
    not_found_message = "用户不存在"

    def get_queryset(self) -> QuerySet[User]:
        return super().get_queryset().select_related("community")

    def get_active(self, user_id: int) -> User:
        """获取启用中的用户，未命中抛 404"""
        return self.get_or_raise(pk=user_id, is_active=True)


class CommunityRepo(BaseRepo[Community]):
    """社区仓储：按 slug 查询与统计计数维护"""

    model = Community
    not_found_message = "社区不存在"

    def get_by_slug(self, slug: str) -> Community:
        return self.get_or_raise(slug=slug)

    def incr_contests(self, community_id: int, delta: int = 1) -> None:
        """比赛数增减：使用 F() 表达式原子更新"""
        qs = self.filter(pk=community_id)
        if delta < 0:
            qs = qs.filter(total_contests__gte=-delta)
        qs.update(total_contests=F("total_contests") + delta)

    def incr_participations(self, community_id: int, delta: int = 1) -> None:
        """参赛人次增减：报名 +1 / 退赛 -1"""
        qs = self.filter(pk=community_id)
        if delta < 0:
            # 计数字段为无符号，避免减到负数
            qs = qs.filter(total_participations__gte=-delta)
        qs.update(total_participations=F("total_participations") + delta)
