from __future__ import annotations

from django.urls import path

from .views import ContestSubmissionView

app_name = "submissions"

# 路由：挂载在 contests/<contest_slug>/submissions/ 下
urlpatterns = [
    path("", ContestSubmissionView.as_view(), name="list"),
]
