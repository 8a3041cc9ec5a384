from __future__ import annotations

from django.contrib import admin

from .models import Submission


# Admin 配置：查看提交日志（只读）


@admin.register(Submission)
class SubmissionAdmin(admin.ModelAdmin):
    """提交记录后台：便于运营查看判题结果与得分"""

    list_display = ("id", "contest", "user", "problem_index", "language", "status", "score", "submitted_at")
    list_filter = ("status", "language", "contest")
    search_fields = ("user__username", "contest__slug")
    list_select_related = ("contest", "user")

    # 提交日志只追加，后台不提供修改入口
    readonly_fields = (
        "contest",
        "participant",
        "user",
        "problem",
        "problem_index",
        "language",
        "code",
        "status",
        "score",
        "test_cases_passed",
        "total_test_cases",
        "execution_time_ms",
        "memory_kb",
        "message",
        "submitted_at",
        "judged_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
