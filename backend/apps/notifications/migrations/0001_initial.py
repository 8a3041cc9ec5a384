import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("contests", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("contest_new", "新比赛发布"),
                            ("contest_registration_open", "报名开启"),
                            ("contest_registration_success", "报名成功"),
                            ("contest_upcoming", "即将开赛"),
                            ("contest_started", "比赛开始"),
                            ("contest_freeze", "封榜生效"),
                            ("contest_ended", "比赛结束"),
                            ("contest_cancelled", "比赛取消"),
                            ("contest_disqualified", "取消参赛资格"),
                            ("submission_result", "判题结果"),
                            ("clarification_answered", "答疑回复"),
                        ],
                        max_length=64,
                        verbose_name="通知类型",
                    ),
                ),
                ("title", models.CharField(max_length=200, verbose_name="标题")),
                ("body", models.TextField(blank=True, default="", verbose_name="正文")),
                ("payload", models.JSONField(blank=True, default=dict, verbose_name="附加数据")),
                (
                    "dedup_key",
                    models.CharField(blank=True, db_index=True, default="", max_length=255, verbose_name="去重键"),
                ),
                ("read_at", models.DateTimeField(blank=True, null=True, verbose_name="已读时间")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "contest",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to="contests.contest",
                        verbose_name="关联比赛",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="接收用户",
                    ),
                ),
            ],
            options={
                "verbose_name": "通知",
                "verbose_name_plural": "通知",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["user", "read_at"], name="notif_user_read_idx"),
                    models.Index(fields=["user", "type", "created_at"], name="notif_user_type_time_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("dedup_key", ""), _negated=True),
                        fields=("user", "dedup_key"),
                        name="uniq_notification_user_dedup_key",
                    ),
                ],
            },
        ),
    ]
