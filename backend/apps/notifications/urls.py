from __future__ import annotations

from django.urls import path

from .views import (
    NotificationListView,
    NotificationUnreadCountView,
    NotificationMarkReadView,
    NotificationMarkAllReadView,
)

app_name = "notifications"

urlpatterns = [
    # 我的通知（分页，?status=unread 仅未读）
    path("", NotificationListView.as_view(), name="list"),
    # 未读数量：前端角标
    path("unread-count/", NotificationUnreadCountView.as_view(), name="unread-count"),
    # 单条已读
    path("<int:notification_id>/read/", NotificationMarkReadView.as_view(), name="mark-read"),
    # 全部已读
    path("mark-all-read/", NotificationMarkAllReadView.as_view(), name="mark-all-read"),
]
