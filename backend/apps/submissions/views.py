from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.pagination import StandardPagination
from apps.common.permissions import IsAuthenticated
from apps.common.schema_utils import (
    api_response_schema,
    list_response,
    pagination_parameters,
    submission_serializer,
)
from apps.common.throttles import SubmissionRateThrottle

from .schemas import SubmissionCreateSchema, parse_problem_index
from .services import SubmissionListService, SubmissionService, serialize_submission


# 视图层：比赛作用域的代码提交与提交记录查询


class ContestSubmissionView(APIView):
    """
    代码提交接口：
    - GET 参赛者查看自己的提交，比赛管理者查看全部（分页，可按题号过滤）
    - POST 提交代码，同步返回判题结果
    """

    permission_classes = [IsAuthenticated]
    throttle_classes = [SubmissionRateThrottle]

    @extend_schema(
        summary="提交记录",
        operation_id="contest_submission_list",
        tags=["submissions"],
        request=None,
        responses=list_response("SubmissionList", submission_serializer(), paginated=True),
        parameters=[
            OpenApiParameter(
                name="problem_index",
                location=OpenApiParameter.QUERY,
                description="按题号过滤",
                required=False,
                type=int,
            ),
            *pagination_parameters(),
        ],
    )
    def get(self, request: Request, contest_slug: str) -> Response:
        problem_index = parse_problem_index(request.query_params.get("problem_index"), required=False)
        queryset = SubmissionListService().execute(contest_slug, request.user, problem_index=problem_index)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response([serialize_submission(s) for s in page])

    @extend_schema(
        summary="提交代码",
        operation_id="contest_submission_create",
        tags=["submissions"],
        request=inline_serializer(
            name="SubmissionCreateRequest",
            fields={
                "problem_index": serializers.IntegerField(),
                "language": serializers.CharField(),
                "code": serializers.CharField(),
            },
        ),
        responses=api_response_schema("SubmissionCreate", {"submission": submission_serializer()}),
    )
    def post(self, request: Request, contest_slug: str) -> Response:
        payload = {**request.data, "contest_slug": contest_slug}
        schema = SubmissionCreateSchema.from_dict(payload)
        submission = SubmissionService().execute(schema, request.user)
        return response.created({"submission": serialize_submission(submission)}, message="提交已判题")
