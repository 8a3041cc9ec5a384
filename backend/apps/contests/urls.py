from __future__ import annotations

from django.urls import include, path

from .views import (
    ClarificationAnswerView,
    ClarificationListView,
    ContestActionView,
    ContestDetailView,
    ContestListView,
    ContestRegistrationView,
    ContestStatsView,
    ContestUpcomingView,
    LeaderboardView,
    ParticipantDisqualifyView,
    ParticipantListView,
)

# 路由配置：声明比赛、报名、排行榜、答疑相关的 API 路径

app_name = "contests"

urlpatterns = [
    # 比赛列表 / 创建
    path("", ContestListView.as_view(), name="list"),
    # 即将开始的比赛
    path("upcoming/", ContestUpcomingView.as_view(), name="upcoming"),
    # 生命周期操作
    path("<slug:contest_slug>/actions/<str:action>/", ContestActionView.as_view(), name="action"),
    # 报名 / 退赛
    path("<slug:contest_slug>/registration/", ContestRegistrationView.as_view(), name="registration"),
    # 参赛者
    path("<slug:contest_slug>/participants/", ParticipantListView.as_view(), name="participants"),
    path(
        "<slug:contest_slug>/participants/<int:user_id>/disqualify/",
        ParticipantDisqualifyView.as_view(),
        name="disqualify",
    ),
    path("<slug:contest_slug>/leaderboard/", LeaderboardView.as_view(), name="leaderboard"),
    path("<slug:contest_slug>/stats/", ContestStatsView.as_view(), name="stats"),
    # 答疑
    path("<slug:contest_slug>/clarifications/", ClarificationListView.as_view(), name="clarifications"),
    path(
        "<slug:contest_slug>/clarifications/<int:clarification_id>/answer/",
        ClarificationAnswerView.as_view(),
        name="clarification-answer",
    ),
    # 提交记录与判题（比赛作用域）
    path("<slug:contest_slug>/submissions/", include("apps.submissions.urls")),
    # 比赛详情
    path("<slug:contest_slug>/", ContestDetailView.as_view(), name="detail"),
]
