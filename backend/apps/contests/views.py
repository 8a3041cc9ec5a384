from __future__ import annotations

from django.db.models import Count, Q
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.exceptions import NotFoundError, ValidationError
from apps.common.pagination import StandardPagination
from apps.common.permissions import (
    CONTEST_MANAGER_ROLES,
    AllowAny,
    IsAuthenticated,
    IsAuthenticatedOrReadOnly,
    RolePermission,
)
from apps.common.schema_utils import (
    api_response_schema,
    clarification_serializer,
    contest_summary_serializer,
    leaderboard_entry_serializer,
    list_response,
    pagination_parameters,
    participant_serializer,
    problem_serializer,
)
from apps.common.throttles import UserPostRateThrottle

from .leaderboard import LeaderboardService
from .lifecycle import PHASE_FILTERS, ContestPhase, derive_phase
from .models import Contest
from .permissions import is_privileged, privileged_q
from .repo import ContestRepo
from .schemas import (
    ClarificationAnswerSchema,
    ClarificationAskSchema,
    ContestCreateSchema,
    ContestUpdateSchema,
    RegistrationSchema,
    parse_bool,
)
from .services import (
    ClarificationAnswerService,
    ClarificationAskService,
    ClarificationListService,
    ContestContextService,
    ContestDeleteService,
    ContestDisqualifyService,
    ContestLeaveService,
    ContestRegistrationService,
    ContestStatsService,
    ContestTransitionService,
    ContestUpdateService,
    CreateContestService,
    serialize_clarification,
    serialize_contest,
    serialize_participant,
    serialize_problem,
)


# 视图层：暴露比赛、报名、排行榜、答疑接口，仅做参数转换与调用服务层，不承载业务


def _registered_contest_ids(user, contests) -> set[int]:
    if not getattr(user, "is_authenticated", False):
        return set()
    return set(
        ContestContextService().participant_repo.filter(contest__in=contests, user=user)
        .values_list("contest_id", flat=True)
    )


class ContestListView(APIView):
    """比赛列表/创建接口：GET 公共访问（草稿仅创建人可见），POST 仅导师或管理员"""

    permission_classes = [IsAuthenticatedOrReadOnly, RolePermission]
    required_roles_map = {"post": CONTEST_MANAGER_ROLES}
    throttle_classes = [UserPostRateThrottle]

    @extend_schema(
        summary="比赛列表",
        operation_id="contest_list",
        tags=["contests"],
        request=None,
        responses=list_response("ContestList", contest_summary_serializer(), paginated=True),
        parameters=[
            OpenApiParameter(
                name="community",
                location=OpenApiParameter.QUERY,
                description="社区标识",
                required=False,
                type=str,
            ),
            OpenApiParameter(
                name="phase",
                location=OpenApiParameter.QUERY,
                description="按实时阶段过滤",
                required=False,
                type=str,
                enum=[p.value for p in ContestPhase],
            ),
            *pagination_parameters(),
        ],
    )
    def get(self, request: Request) -> Response:
        now = timezone.now()
        # 草稿仅对比赛管理者可见，与详情接口规则一致
        visible = ~Q(status=Contest.Status.DRAFT) | privileged_q(request.user)
        queryset = ContestRepo().get_queryset().filter(visible)
        community = request.query_params.get("community")
        if community:
            queryset = queryset.filter(community__slug=community)
        phase = request.query_params.get("phase")
        if phase:
            if phase not in PHASE_FILTERS:
                raise ValidationError(message="phase 取值不合法", extra={"allowed": list(PHASE_FILTERS)})
            queryset = queryset.filter(PHASE_FILTERS[phase](now))
        queryset = queryset.annotate(problem_total=Count("problems")).order_by("-start_time", "id")
        paginator = StandardPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        registered = _registered_contest_ids(request.user, page)
        data = [
            serialize_contest(
                contest,
                now=now,
                is_registered=(contest.id in registered) if request.user.is_authenticated else None,
            )
            for contest in page
        ]
        return paginator.get_paginated_response(data)

    @extend_schema(
        summary="创建比赛",
        operation_id="contest_create",
        tags=["contests"],
        request=inline_serializer(
            name="ContestCreateRequest",
            fields={
                "title": serializers.CharField(),
                "community": serializers.CharField(),
                "slug": serializers.CharField(required=False),
                "description": serializers.CharField(required=False),
                "contest_type": serializers.ChoiceField(choices=Contest.ContestType.choices, required=False),
                "registration_start": serializers.DateTimeField(),
                "registration_end": serializers.DateTimeField(),
                "start_time": serializers.DateTimeField(),
                "end_time": serializers.DateTimeField(),
                "max_participants": serializers.IntegerField(required=False, allow_null=True),
                "allow_clarifications": serializers.BooleanField(required=False),
                "freeze_leaderboard": serializers.BooleanField(required=False),
                "freeze_minutes": serializers.IntegerField(required=False),
                "max_attempts": serializers.IntegerField(required=False, allow_null=True),
                "scoring_mode": serializers.ChoiceField(choices=Contest.ScoringMode.choices, required=False),
                "allowed_languages": serializers.ListField(child=serializers.CharField(), required=False),
                "problems": serializers.ListField(child=serializers.DictField(), required=False),
            },
        ),
        responses=api_response_schema("ContestCreate", {"contest": contest_summary_serializer()}),
    )
    def post(self, request: Request) -> Response:
        schema = ContestCreateSchema.from_dict(request.data)
        contest = CreateContestService().execute(schema, request.user)
        return response.created({"contest": serialize_contest(contest)}, message="比赛已创建")


class ContestUpcomingView(APIView):
    """即将开始的比赛：已发布或报名中且尚未开赛"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="即将开始的比赛",
        operation_id="contest_upcoming",
        tags=["contests"],
        request=None,
        responses=list_response("ContestUpcoming", contest_summary_serializer()),
        parameters=[
            OpenApiParameter(
                name="community",
                location=OpenApiParameter.QUERY,
                description="社区标识",
                required=False,
                type=str,
            ),
        ],
    )
    def get(self, request: Request) -> Response:
        now = timezone.now()
        queryset = ContestRepo().filter(
            status__in=[Contest.Status.PUBLISHED, Contest.Status.REGISTRATION_OPEN],
            start_time__gt=now,
        )
        community = request.query_params.get("community")
        if community:
            queryset = queryset.filter(community__slug=community)
        contests = list(queryset.annotate(problem_total=Count("problems")).order_by("start_time", "id")[:50])
        registered = _registered_contest_ids(request.user, contests)
        return response.success(
            [
                serialize_contest(
                    contest,
                    now=now,
                    is_registered=(contest.id in registered) if request.user.is_authenticated else None,
                )
                for contest in contests
            ]
        )


class ContestDetailView(APIView):
    """
    比赛详情 / 修改 / 删除：
    - 草稿比赛仅管理者可见
    - 题目在开赛前仅对管理者可见，管理者额外可见测试用例
    """

    permission_classes = [IsAuthenticatedOrReadOnly]

    @extend_schema(
        summary="比赛详情",
        operation_id="contest_detail",
        tags=["contests"],
        request=None,
        responses=api_response_schema(
            "ContestDetail",
            {
                "contest": contest_summary_serializer(),
                "problems": serializers.ListField(child=problem_serializer()),
                "can_manage": serializers.BooleanField(),
            },
        ),
    )
    def get(self, request: Request, contest_slug: str) -> Response:
        context = ContestContextService()
        contest = context.get_contest(contest_slug)
        can_manage = is_privileged(request.user, contest)
        if contest.status == Contest.Status.DRAFT and not can_manage:
            raise NotFoundError(message="比赛不存在")
        now = timezone.now()
        participant = context.get_participant(contest, request.user)
        problems = []
        if can_manage or derive_phase(contest, now) != ContestPhase.UPCOMING.value:
            problems = [serialize_problem(p, include_hidden=can_manage) for p in context.list_problems(contest)]
        return response.success(
            {
                "contest": serialize_contest(
                    contest,
                    now=now,
                    is_registered=(participant is not None) if request.user.is_authenticated else None,
                ),
                "problems": problems,
                "can_manage": can_manage,
            }
        )

    @extend_schema(
        summary="修改比赛配置",
        operation_id="contest_update",
        tags=["contests"],
        request=inline_serializer(
            name="ContestUpdateRequest",
            fields={
                "title": serializers.CharField(required=False),
                "start_time": serializers.DateTimeField(required=False),
                "end_time": serializers.DateTimeField(required=False),
                "max_participants": serializers.IntegerField(required=False, allow_null=True),
                "problems": serializers.ListField(child=serializers.DictField(), required=False),
            },
        ),
        responses=api_response_schema("ContestUpdate", {"contest": contest_summary_serializer()}),
    )
    def patch(self, request: Request, contest_slug: str) -> Response:
        schema = ContestUpdateSchema.from_payload(contest_slug, request.data)
        contest = ContestUpdateService().execute(schema, request.user)
        return response.success({"contest": serialize_contest(contest)}, message="比赛已更新")

    @extend_schema(
        summary="删除比赛",
        operation_id="contest_delete",
        tags=["contests"],
        request=None,
        responses=api_response_schema("ContestDelete"),
    )
    def delete(self, request: Request, contest_slug: str) -> Response:
        ContestDeleteService().execute(contest_slug, request.user)
        return response.deleted(message="比赛已删除")


class ContestActionView(APIView):
    """生命周期操作：publish / open_registration / close_registration / start / complete / cancel"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="比赛状态操作",
        operation_id="contest_action",
        tags=["contests"],
        request=None,
        responses=api_response_schema("ContestAction", {"contest": contest_summary_serializer()}),
    )
    def post(self, request: Request, contest_slug: str, action: str) -> Response:
        contest = ContestTransitionService().execute(contest_slug, action, request.user)
        return response.success({"contest": serialize_contest(contest)}, message="操作成功")


class ContestRegistrationView(APIView):
    """报名（POST）与退赛（DELETE）"""

    permission_classes = [IsAuthenticated]
    throttle_classes = [UserPostRateThrottle]

    @extend_schema(
        summary="报名参赛",
        operation_id="contest_register",
        tags=["contests"],
        request=inline_serializer(
            name="ContestRegisterRequest",
            fields={"team_data": serializers.DictField(required=False, allow_null=True)},
        ),
        responses=api_response_schema("ContestRegister", {"participant": participant_serializer()}),
    )
    def post(self, request: Request, contest_slug: str) -> Response:
        payload = {**request.data, "contest_slug": contest_slug}
        schema = RegistrationSchema.from_dict(payload)
        participant = ContestRegistrationService().execute(schema, request.user)
        return response.created({"participant": serialize_participant(participant)}, message="报名成功")

    @extend_schema(
        summary="退出比赛",
        operation_id="contest_leave",
        tags=["contests"],
        request=None,
        responses=api_response_schema("ContestLeave"),
    )
    def delete(self, request: Request, contest_slug: str) -> Response:
        ContestLeaveService().execute(contest_slug, request.user)
        return response.deleted(message="已退出比赛")


class ParticipantListView(APIView):
    """参赛者列表：按报名顺序分页"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="参赛者列表",
        operation_id="contest_participants",
        tags=["contests"],
        request=None,
        responses=list_response("ContestParticipantList", participant_serializer(), paginated=True),
        parameters=pagination_parameters(),
    )
    def get(self, request: Request, contest_slug: str) -> Response:
        context = ContestContextService()
        contest = context.get_contest(contest_slug)
        queryset = context.participant_repo.list_for_contest(contest)
        paginator = StandardPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        return paginator.get_paginated_response([serialize_participant(p) for p in page])


class ParticipantDisqualifyView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="取消参赛资格",
        operation_id="contest_disqualify",
        tags=["contests"],
        request=None,
        responses=api_response_schema("ContestDisqualify", {"participant": participant_serializer()}),
    )
    def post(self, request: Request, contest_slug: str, user_id: int) -> Response:
        participant = ContestDisqualifyService().execute(contest_slug, request.user, user_id)
        return response.success({"participant": serialize_participant(participant)}, message="已取消参赛资格")


class LeaderboardView(APIView):
    """排行榜：封榜期间非管理者看到封榜视图，管理者可通过 ?unfrozen=1 查看实时排名"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="排行榜",
        operation_id="contest_leaderboard",
        tags=["contests"],
        request=None,
        parameters=[
            OpenApiParameter(
                name="unfrozen",
                location=OpenApiParameter.QUERY,
                description="管理者查看未封榜排名",
                required=False,
                type=bool,
            ),
        ],
        responses=api_response_schema(
            "ContestLeaderboard",
            {
                "contest": serializers.CharField(),
                "frozen": serializers.BooleanField(),
                "freeze_at": serializers.DateTimeField(allow_null=True),
                "generated_at": serializers.DateTimeField(),
                "entries": serializers.ListField(child=leaderboard_entry_serializer()),
            },
        ),
    )
    def get(self, request: Request, contest_slug: str) -> Response:
        contest = ContestContextService().get_contest(contest_slug)
        unfrozen = parse_bool(request.query_params.get("unfrozen"))
        data = LeaderboardService().build(contest, request.user, unfrozen=unfrozen)
        return response.success(data)


class ContestStatsView(APIView):
    permission_classes = [AllowAny]

    @extend_schema(
        summary="比赛统计",
        operation_id="contest_stats",
        tags=["contests"],
        request=None,
        responses=api_response_schema(
            "ContestStats",
            {
                "contest": serializers.CharField(),
                "phase": serializers.CharField(),
                "total_participants": serializers.IntegerField(),
                "total_submissions": serializers.IntegerField(),
                "accepted_submissions": serializers.IntegerField(),
                "average_score": serializers.FloatField(),
                "completion_rate": serializers.FloatField(),
                "problems": serializers.ListField(child=serializers.DictField()),
            },
        ),
    )
    def get(self, request: Request, contest_slug: str) -> Response:
        _ = request
        return response.success(ContestStatsService().execute(contest_slug))


class ClarificationListView(APIView):
    """答疑列表（GET）与提问（POST）"""

    permission_classes = [IsAuthenticatedOrReadOnly]
    throttle_classes = [UserPostRateThrottle]

    @extend_schema(
        summary="答疑列表",
        operation_id="contest_clarifications",
        tags=["contests"],
        request=None,
        responses=list_response("ClarificationList", clarification_serializer()),
    )
    def get(self, request: Request, contest_slug: str) -> Response:
        items = ClarificationListService().execute(contest_slug, request.user)
        return response.success([serialize_clarification(c) for c in items])

    @extend_schema(
        summary="提问",
        operation_id="contest_clarification_ask",
        tags=["contests"],
        request=inline_serializer(
            name="ClarificationAskRequest",
            fields={
                "question": serializers.CharField(),
                "problem_index": serializers.IntegerField(required=False, allow_null=True),
            },
        ),
        responses=api_response_schema("ClarificationAsk", {"clarification": clarification_serializer()}),
    )
    def post(self, request: Request, contest_slug: str) -> Response:
        payload = {**request.data, "contest_slug": contest_slug}
        schema = ClarificationAskSchema.from_dict(payload)
        clarification = ClarificationAskService().execute(schema, request.user)
        return response.created({"clarification": serialize_clarification(clarification)}, message="提问已提交")


class ClarificationAnswerView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="回复答疑",
        operation_id="contest_clarification_answer",
        tags=["contests"],
        request=inline_serializer(
            name="ClarificationAnswerRequest",
            fields={
                "answer": serializers.CharField(),
                "is_public": serializers.BooleanField(required=False),
            },
        ),
        responses=api_response_schema("ClarificationAnswer", {"clarification": clarification_serializer()}),
    )
    def post(self, request: Request, contest_slug: str, clarification_id: int) -> Response:
        payload = {**request.data, "contest_slug": contest_slug, "clarification_id": clarification_id}
        schema = ClarificationAnswerSchema.from_dict(payload)
        clarification = ClarificationAnswerService().execute(schema, request.user)
        return response.success({"clarification": serialize_clarification(clarification)}, message="已回复")
