import django.db.models.deletion
import django.utils.timezone
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
            name="Submission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("problem_index", models.PositiveIntegerField(verbose_name="题号")),
                ("language", models.CharField(max_length=32, verbose_name="语言")),
                ("code", models.TextField(verbose_name="代码")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "判题中"),
                            ("accepted", "通过"),
                            ("wrong_answer", "答案错误"),
                            ("time_limit_exceeded", "运行超时"),
                            ("memory_limit_exceeded", "内存超限"),
                            ("runtime_error", "运行错误"),
                            ("compilation_error", "编译错误"),
                            ("partial", "部分通过"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=32,
                        verbose_name="状态",
                    ),
                ),
                ("score", models.FloatField(default=0, verbose_name="得分")),
                ("test_cases_passed", models.PositiveIntegerField(default=0, verbose_name="通过用例数")),
                ("total_test_cases", models.PositiveIntegerField(default=0, verbose_name="用例总数")),
                ("execution_time_ms", models.PositiveIntegerField(blank=True, null=True, verbose_name="运行时间（毫秒）")),
                ("memory_kb", models.PositiveIntegerField(blank=True, null=True, verbose_name="内存（KB）")),
                ("message", models.CharField(blank=True, default="", max_length=500, verbose_name="提示")),
                (
                    "submitted_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="提交时间"),
                ),
                ("judged_at", models.DateTimeField(blank=True, null=True, verbose_name="判题时间")),
                (
                    "contest",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="contests.contest",
                        verbose_name="所属比赛",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="contests.contestparticipant",
                        verbose_name="参赛记录",
                    ),
                ),
                (
                    "problem",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="contests.problem",
                        verbose_name="题目",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="用户",
                    ),
                ),
            ],
            options={
                "verbose_name": "代码提交",
                "verbose_name_plural": "代码提交",
                "ordering": ["-submitted_at", "-id"],
                "indexes": [
                    models.Index(fields=["contest", "submitted_at"], name="submission_contest_time_idx"),
                    models.Index(fields=["participant", "problem_index"], name="submission_participant_idx"),
                ],
            },
        ),
    ]
