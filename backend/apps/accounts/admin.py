"""
后台账户管理配置：
- 业务场景：Django Admin 管理社区与用户角色
- 功能：按角色/社区筛选、按进行中的比赛筛选参赛用户
"""

from __future__ import annotations

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils import timezone

from apps.contests.lifecycle import running_q
from apps.contests.models import Contest

from .models import Community, User


class ActiveContestUserFilter(admin.SimpleListFilter):
    """按比赛筛选正在参赛的用户"""

    title = "正在进行的比赛"
    parameter_name = "active_contest"

    def lookups(self, request, model_admin):
        contests = Contest.objects.filter(running_q(timezone.now())).order_by("-start_time")
        return [(str(c.id), c.title) for c in contests]

    def queryset(self, request, queryset):
        value = self.value()
        if not value:
            return queryset
        return queryset.filter(
            contest_participations__contest_id=value,
            contest_participations__is_disqualified=False,
        ).distinct()


@admin.register(Community)
class CommunityAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "owner", "total_contests", "total_participations", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}
    # 计数字段由业务维护，后台只读
    readonly_fields = ("total_contests", "total_participations", "created_at")
    raw_id_fields = ("owner",)


@admin.register(User)
class UserAdmin(DjangoUserAdmin):
    list_display = ("username", "nickname", "role", "community", "is_active", "date_joined")
    list_filter = ("role", "community", "is_active", ActiveContestUserFilter)
    search_fields = ("username", "nickname", "email")
    fieldsets = DjangoUserAdmin.fieldsets + (
        ("平台信息", {"fields": ("nickname", "role", "community")}),
    )
    add_fieldsets = DjangoUserAdmin.add_fieldsets + (
        ("平台信息", {"fields": ("role", "community")}),
    )
