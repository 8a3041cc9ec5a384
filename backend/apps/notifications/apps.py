from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    """
    Notifications 应用配置：站内通知的持久化、已读管理与周期提醒任务
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.notifications"
    label = "notifications"
    verbose_name = "Notifications"
