from django.apps import AppConfig


class AccountsConfig(AppConfig):
    """
    账户模块应用配置：
    - 提供社区与用户模型（AUTH_USER_MODEL = accounts.User）
    - 对外暴露只读的用户目录 UserDirectory，供比赛/提交模块做授权判断
    """

    # 默认主键类型：使用 BigAutoField，避免主键溢出
    default_auto_field = "django.db.models.BigAutoField"
    # 应用全路径：与 Django INSTALLED_APPS 保持一致
    name = "apps.accounts"
    # 应用标签：用于 Django 内部标识，区分其他 app
    label = "accounts"
    verbose_name = "Accounts"
