from __future__ import annotations

from django.urls import path

from .views import CommunityStatsView, MeView

app_name = "accounts"

urlpatterns = [
    # 当前用户（来自用户目录）
    path("me/", MeView.as_view(), name="me"),
    # 社区统计
    path("communities/<slug:community_slug>/stats/", CommunityStatsView.as_view(), name="community-stats"),
]
