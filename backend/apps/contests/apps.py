from django.apps import AppConfig


class ContestsConfig(AppConfig):
    """
    Contests 应用配置：比赛生命周期、报名、排行榜与答疑
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.contests"
    label = "contests"
    verbose_name = "Contests"
