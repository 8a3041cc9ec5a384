# apps/common/schema_utils.py
from __future__ import annotations

from rest_framework import serializers
from drf_spectacular.utils import inline_serializer, OpenApiParameter


_CACHE: dict[str, type[serializers.Serializer]] = {}


def _cached(name: str, builder, **kwargs) -> serializers.Serializer:
    """
    同名 inline serializer 只生成一次类，每次调用返回新实例
    - 字段实例被 ListField(child=...) 或外层 serializer 绑定后不能复用
    """
    if name not in _CACHE:
        _CACHE[name] = type(builder())
    return _CACHE[name](**kwargs)


def _envelope(name: str, data_field: serializers.Field, extra_serializer: serializers.Field | None = None):
    return inline_serializer(
        name=f"{name}Response",
        fields={
            "success": serializers.BooleanField(help_text="code == 0 时为 true"),
            "code": serializers.IntegerField(help_text="业务状态码，0 表示成功"),
            "message": serializers.CharField(help_text="提示信息"),
            "data": data_field,
            "extra": extra_serializer
            if extra_serializer
            else serializers.DictField(required=False, allow_null=True, help_text="附加信息"),
        },
    )


def api_response_schema(
    name: str,
    data_fields: dict | None = None,
    *,
    extra_serializer: serializers.Field | None = None,
) -> serializers.Serializer:
    """
    构造统一响应 Schema：success/code/message/data/extra
    - name 用于生成唯一的响应/数据命名
    - data_fields 为 data 内部的字段定义；None 表示 data 为空
    """
    if data_fields is None:
        return _envelope(name, serializers.JSONField(allow_null=True, required=False), extra_serializer)
    normalized_fields = {}
    for key, value in data_fields.items():
        if isinstance(value, type) and issubclass(value, serializers.Serializer):
            normalized_fields[key] = value()
        else:
            normalized_fields[key] = value
    data_serializer = inline_serializer(name=f"{name}Data", fields=normalized_fields)
    return _envelope(name, data_serializer, extra_serializer)


def pagination_meta_serializer(**kwargs):
    return _cached(
        "PaginationMeta",
        lambda: inline_serializer(
            name="PaginationMeta",
            fields={
                "page": serializers.IntegerField(help_text="当前页码（从 1 开始）"),
                "page_size": serializers.IntegerField(help_text="每页条数"),
                "total": serializers.IntegerField(help_text="总条数"),
                "total_pages": serializers.IntegerField(help_text="总页数", required=False, allow_null=True),
                "has_next": serializers.BooleanField(help_text="是否有下一页"),
                "has_previous": serializers.BooleanField(help_text="是否有上一页"),
            },
        ),
        **kwargs,
    )


def pagination_parameters() -> list[OpenApiParameter]:
    """通用分页查询参数"""
    return [
        OpenApiParameter(
            name="page",
            location=OpenApiParameter.QUERY,
            description="页码（从 1 开始）",
            required=False,
            type=int,
        ),
        OpenApiParameter(
            name="page_size",
            location=OpenApiParameter.QUERY,
            description="每页条数",
            required=False,
            type=int,
        ),
    ]


def list_response(name: str, item_serializer, *, paginated: bool = False):
    """列表响应：data 为数组，分页接口在 extra 中附带分页元信息"""
    return _envelope(
        name,
        serializers.ListField(child=item_serializer),
        pagination_meta_serializer() if paginated else None,
    )


# 常用数据结构
def user_summary_serializer(**kwargs):
    return _cached(
        "UserSummary",
        lambda: inline_serializer(
            name="UserSummary",
            fields={
                "id": serializers.IntegerField(),
                "username": serializers.CharField(),
                "nickname": serializers.CharField(allow_blank=True),
                "role": serializers.CharField(help_text="student / mentor / community_admin / admin"),
                "community_id": serializers.IntegerField(allow_null=True),
            },
        ),
        **kwargs,
    )


def problem_serializer(**kwargs):
    return _cached(
        "ContestProblem",
        lambda: inline_serializer(
            name="ContestProblem",
            fields={
                "index": serializers.IntegerField(help_text="题号（从 0 开始）"),
                "title": serializers.CharField(),
                "description": serializers.CharField(allow_blank=True),
                "difficulty": serializers.CharField(),
                "points": serializers.IntegerField(),
                "time_limit_ms": serializers.IntegerField(),
                "memory_limit_mb": serializers.IntegerField(),
                "sample_input": serializers.CharField(allow_blank=True),
                "sample_output": serializers.CharField(allow_blank=True),
                "tags": serializers.ListField(child=serializers.CharField()),
            },
        ),
        **kwargs,
    )


def contest_summary_serializer(**kwargs):
    return _cached(
        "ContestSummary",
        lambda: inline_serializer(
            name="ContestSummary",
            fields={
                "id": serializers.IntegerField(),
                "slug": serializers.CharField(help_text="比赛标识"),
                "title": serializers.CharField(help_text="比赛名称"),
                "description": serializers.CharField(allow_blank=True),
                "community": serializers.CharField(help_text="社区 slug"),
                "contest_type": serializers.CharField(),
                "status": serializers.CharField(help_text="存储状态"),
                "phase": serializers.CharField(help_text="实时阶段：upcoming / running / ended"),
                "registration_start": serializers.DateTimeField(),
                "registration_end": serializers.DateTimeField(),
                "start_time": serializers.DateTimeField(),
                "end_time": serializers.DateTimeField(),
                "max_participants": serializers.IntegerField(allow_null=True),
                "participant_count": serializers.IntegerField(),
                "rules": serializers.DictField(),
                "problem_count": serializers.IntegerField(),
                "is_registered": serializers.BooleanField(required=False),
            },
        ),
        **kwargs,
    )


def participant_serializer(**kwargs):
    return _cached(
        "ContestParticipant",
        lambda: inline_serializer(
            name="ContestParticipant",
            fields={
                "id": serializers.IntegerField(),
                "user_id": serializers.IntegerField(),
                "username": serializers.CharField(),
                "registered_at": serializers.DateTimeField(),
                "score": serializers.FloatField(),
                "solved_problems": serializers.ListField(child=serializers.IntegerField()),
                "team_data": serializers.DictField(allow_null=True),
                "is_disqualified": serializers.BooleanField(),
            },
        ),
        **kwargs,
    )


def leaderboard_entry_serializer(**kwargs):
    return _cached(
        "LeaderboardEntry",
        lambda: inline_serializer(
            name="LeaderboardEntry",
            fields={
                "rank": serializers.IntegerField(),
                "participant_id": serializers.IntegerField(),
                "user_id": serializers.IntegerField(),
                "username": serializers.CharField(),
                "total_score": serializers.FloatField(),
                "solved_count": serializers.IntegerField(),
                "last_solved_at": serializers.DateTimeField(allow_null=True),
                "problems": serializers.ListField(child=serializers.DictField()),
            },
        ),
        **kwargs,
    )


def submission_serializer(**kwargs):
    return _cached(
        "SubmissionPayload",
        lambda: inline_serializer(
            name="SubmissionPayload",
            fields={
                "id": serializers.IntegerField(),
                "contest": serializers.CharField(),
                "user_id": serializers.IntegerField(),
                "problem_index": serializers.IntegerField(),
                "language": serializers.CharField(),
                "status": serializers.CharField(),
                "score": serializers.FloatField(),
                "test_cases_passed": serializers.IntegerField(),
                "total_test_cases": serializers.IntegerField(),
                "execution_time_ms": serializers.IntegerField(allow_null=True),
                "memory_kb": serializers.IntegerField(allow_null=True),
                "submitted_at": serializers.DateTimeField(),
                "judged_at": serializers.DateTimeField(allow_null=True),
            },
        ),
        **kwargs,
    )


def clarification_serializer(**kwargs):
    return _cached(
        "Clarification",
        lambda: inline_serializer(
            name="Clarification",
            fields={
                "id": serializers.IntegerField(),
                "problem_index": serializers.IntegerField(allow_null=True),
                "question": serializers.CharField(),
                "answer": serializers.CharField(allow_blank=True),
                "is_public": serializers.BooleanField(),
                "asked_by": serializers.IntegerField(),
                "asked_at": serializers.DateTimeField(),
                "answered_at": serializers.DateTimeField(allow_null=True),
            },
        ),
        **kwargs,
    )


def notification_serializer(**kwargs):
    return _cached(
        "Notification",
        lambda: inline_serializer(
            name="Notification",
            fields={
                "id": serializers.IntegerField(),
                "type": serializers.CharField(),
                "title": serializers.CharField(),
                "body": serializers.CharField(allow_blank=True),
                "payload": serializers.DictField(),
                "contest": serializers.CharField(allow_null=True),
                "is_read": serializers.BooleanField(),
                "created_at": serializers.DateTimeField(),
            },
        ),
        **kwargs,
    )
