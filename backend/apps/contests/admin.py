from __future__ import annotations

from django.contrib import admin, messages
from django.utils import timezone
from django.utils.html import format_html_join

from apps.common.exceptions import BizError
from apps.common.infra.logger import get_logger, logger_extra

from .leaderboard import LeaderboardService
from .lifecycle import PHASE_FILTERS, ContestAction, ContestPhase, derive_phase
from .models import Clarification, Contest, ContestParticipant, Problem
from .services import ContestTransitionService

# 后台注册：仅负责 Django Admin 展示配置，状态变更统一走服务层

logger = get_logger(__name__)


class AdminAuditMixin:
    """后台审计日志：记录增删改关键对象"""

    audit_model = ""

    def _audit(self, request, obj, action: str) -> None:
        logger.info(
            "Admin操作",
            extra=logger_extra(
                {
                    "admin": getattr(request.user, "username", None),
                    "model": self.audit_model or obj.__class__.__name__,
                    "object_id": getattr(obj, "pk", None),
                    "action": action,
                }
            ),
        )

    def log_change(self, request, obj, message):
        super().log_change(request, obj, message)  # type: ignore[misc]
        self._audit(request, obj, "change")

    def log_addition(self, request, obj, message):
        super().log_addition(request, obj, message)  # type: ignore[misc]
        self._audit(request, obj, "add")

    def log_deletion(self, request, obj, object_repr):
        super().log_deletion(request, obj, object_repr)  # type: ignore[misc]
        self._audit(request, obj, "delete")


class ContestPhaseFilter(admin.SimpleListFilter):
    """按实时阶段过滤（未开始/进行中/已结束）"""

    title = "比赛阶段"
    parameter_name = "phase"

    def lookups(self, request, model_admin):
        return [
            (ContestPhase.UPCOMING.value, "未开始"),
            (ContestPhase.RUNNING.value, "进行中"),
            (ContestPhase.ENDED.value, "已结束"),
        ]

    def queryset(self, request, queryset):
        value = self.value()
        if value in PHASE_FILTERS:
            return queryset.filter(PHASE_FILTERS[value](timezone.now()))
        return queryset


class ProblemInline(admin.StackedInline):
    model = Problem
    extra = 0
    ordering = ("index",)
    fields = ("index", "title", "difficulty", "points", "time_limit_ms", "memory_limit_mb", "tags")


@admin.register(Contest)
class ContestAdmin(AdminAuditMixin, admin.ModelAdmin):
    """比赛后台：基础字段检索与过滤，状态流转通过批量操作执行"""

    list_display = ("id", "title", "slug", "community", "status", "phase_display", "start_time", "end_time",
                    "participant_count")
    search_fields = ("title", "slug")
    list_filter = ("status", "contest_type", "community", ContestPhaseFilter)
    list_select_related = ("community",)
    # 状态只能通过生命周期操作修改
    readonly_fields = ("status", "participant_count", "created_at", "updated_at", "leaderboard_preview")
    inlines = (ProblemInline,)
    audit_model = "Contest"
    actions = ["complete_selected", "cancel_selected"]

    @admin.display(description="阶段")
    def phase_display(self, obj):
        return derive_phase(obj, timezone.now())

    @admin.display(description="排行榜前 10 名")
    def leaderboard_preview(self, obj):
        if not obj or not obj.pk:
            return "保存比赛后可查看排行榜"
        entries = LeaderboardService().build(obj, unfrozen=False)["entries"][:10]
        if not entries:
            return "暂无参赛者"
        return format_html_join(
            "",
            "<div>#{} {}（{} 分）</div>",
            ((e["rank"], e["username"], e["total_score"]) for e in entries),
        )

    def has_delete_permission(self, request, obj=None):
        if obj is not None and derive_phase(obj, timezone.now()) == ContestPhase.RUNNING.value:
            return False
        return super().has_delete_permission(request, obj)

    def _run_action(self, request, queryset, action: ContestAction) -> None:
        service = ContestTransitionService()
        done = 0
        for contest in queryset:
            try:
                service.execute(contest.slug, action, request.user)
                done += 1
            except BizError as exc:
                self.message_user(request, f"{contest.title}：{exc.message}", level=messages.WARNING)
        if done:
            self.message_user(request, f"已处理 {done} 场比赛", level=messages.SUCCESS)

    @admin.action(description="结束所选比赛")
    def complete_selected(self, request, queryset):
        self._run_action(request, queryset, ContestAction.COMPLETE)

    @admin.action(description="取消所选比赛")
    def cancel_selected(self, request, queryset):
        self._run_action(request, queryset, ContestAction.CANCEL)


@admin.register(ContestParticipant)
class ContestParticipantAdmin(AdminAuditMixin, admin.ModelAdmin):
    list_display = ("id", "contest", "user", "registered_at", "score", "is_disqualified")
    list_filter = ("is_disqualified", "contest")
    search_fields = ("user__username", "contest__slug")
    list_select_related = ("contest", "user")
    # 聚合分数只能由提交日志重算
    readonly_fields = ("contest", "user", "registered_at", "score", "solved_problems")
    audit_model = "ContestParticipant"

    def has_add_permission(self, request):
        return False


@admin.register(Clarification)
class ClarificationAdmin(AdminAuditMixin, admin.ModelAdmin):
    list_display = ("id", "contest", "asked_by", "problem_index", "is_public", "asked_at", "answered_at")
    list_filter = ("is_public", "contest")
    search_fields = ("question", "answer")
    readonly_fields = ("contest", "asked_by", "problem_index", "question", "asked_at")
    audit_model = "Clarification"
