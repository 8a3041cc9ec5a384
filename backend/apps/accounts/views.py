from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.permissions import AllowAny, IsAuthenticated
from apps.common.schema_utils import api_response_schema, user_summary_serializer

from .services import CommunityStatsService, CurrentUserService


# 视图层：当前用户与社区统计，只做参数转换与调用服务层


class MeView(APIView):
    """当前登录用户：返回用户目录中的角色与社区信息"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="当前用户信息",
        tags=["accounts"],
        request=None,
        responses=api_response_schema("Me", {"user": user_summary_serializer()}),
    )
    def get(self, request: Request) -> Response:
        data = CurrentUserService().execute(request.user)
        return response.success({"user": data})


class CommunityStatsView(APIView):
    """社区统计：公开访问"""

    permission_classes = [AllowAny]

    @extend_schema(
        summary="社区统计",
        tags=["accounts"],
        request=None,
        responses=api_response_schema(
            "CommunityStats",
            {
                "community": serializers.CharField(),
                "name": serializers.CharField(),
                "total_contests": serializers.IntegerField(),
                "active_contests": serializers.IntegerField(),
                "total_participations": serializers.IntegerField(),
                "member_count": serializers.IntegerField(),
            },
        ),
    )
    def get(self, request: Request, community_slug: str) -> Response:
        _ = request
        data = CommunityStatsService().execute(community_slug)
        return response.success(data)
