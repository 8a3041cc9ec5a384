from __future__ import annotations

from django.utils import timezone
from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.common import response
from apps.common.permissions import AllowAny


class HealthCheckView(APIView):
    """
    健康检查接口：负载均衡/监控探活，不做昂贵检查
    """

    permission_classes = [AllowAny]
    authentication_classes: list = []

    @extend_schema(
        summary="健康检查",
        request=None,
        responses=inline_serializer(
            name="HealthCheck",
            fields={"status": serializers.CharField(), "time": serializers.DateTimeField()},
        ),
    )
    def get(self, request: Request) -> Response:
        _ = request
        return response.success({"status": "ok", "time": timezone.now()})
